"""
Remote Command Channel - last-write-wins single slot in remote.json

Remote clients (phones at the side of the stage) write one command; the host
polls the slot and acts on anything newer than what it last handled. There is
no queue and no version: a second command before the host polls replaces the
first.

ts is milliseconds since the epoch and strictly increasing per slot, so the
host's "newer than last" check never drops a command sent within the same
millisecond as the previous one.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

import core_registry as reg

from .document_store import _lock_for, atomic_write_json, load_json
from .errors import ValidationError
from .types import RemoteCommand

logger = logging.getLogger('cueboard.remote')

DEFAULT_POLL_INTERVAL = 0.6


def _now_ms() -> int:
    return int(round(time.time() * 1000))


class RemoteCommandChannel:

    def __init__(self, path: str, clock: Callable[[], int] = _now_ms):
        self.path = path
        self.clock = clock
        self._lock = _lock_for(path)

    def get(self) -> Optional[RemoteCommand]:
        _, raw = load_json(self.path)
        return RemoteCommand.from_dict(raw)

    def send(self, action: str, sound_id: Optional[str] = None) -> RemoteCommand:
        action = str(action or "").strip().lower()
        if not action:
            raise ValidationError("action is required")

        with self._lock:
            previous = self.get()
            ts = self.clock()
            if previous is not None and ts <= previous.ts:
                ts = previous.ts + 1
            command = RemoteCommand(action=action, sound_id=sound_id or None, ts=ts)
            atomic_write_json(self.path, command.to_dict(), indent=None)

        logger.info(f"📡 Remote command: {action} {sound_id or ''}".rstrip())
        if reg.audit_log:
            reg.audit_log('remote_command', action=action, sound_id=sound_id, ts=ts)
        if reg.socketio:
            reg.socketio.emit('remote_command', command.to_dict())
        return command


class RemoteCommandPoller:
    """
    Host side of the channel. poll() hands out each command at most once.

    With skip_existing (default) a command already in the slot when the poller
    is created is treated as handled, so a restart does not replay it.
    """

    def __init__(self, channel: RemoteCommandChannel, skip_existing: bool = True):
        self.channel = channel
        self.last_ts = 0
        if skip_existing:
            existing = channel.get()
            if existing is not None:
                self.last_ts = existing.ts
        self.running = False
        self.thread = None
        self._stop_event = None

    def poll(self) -> Optional[RemoteCommand]:
        command = self.channel.get()
        if command is None or command.ts <= self.last_ts:
            return None
        self.last_ts = command.ts
        return command

    def dispatch(self, command: RemoteCommand, handlers: Dict[str, Callable[[RemoteCommand], None]]):
        handler = handlers.get(command.action)
        if handler is None:
            logger.warning(f"⚠️ No handler for remote action '{command.action}'")
            return
        handler(command)

    def run(self, handlers: Dict[str, Callable[[RemoteCommand], None]],
            interval: float = DEFAULT_POLL_INTERVAL,
            stop_event: Optional[threading.Event] = None):
        """Poll until stop_event is set, dispatching new commands by action."""
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                command = self.poll()
                if command is not None:
                    self.dispatch(command, handlers)
            except Exception as e:
                # keep the loop alive; the next poll retries
                logger.error(f"❌ Remote poll loop error: {e}", exc_info=True)
            stop_event.wait(interval)

    def start(self, handlers: Dict[str, Callable[[RemoteCommand], None]],
              interval: float = DEFAULT_POLL_INTERVAL):
        """Run the poll loop on a daemon thread."""
        if self.running:
            return
        self.running = True
        self._stop_event = threading.Event()
        self.thread = threading.Thread(
            target=self.run, args=(handlers, interval, self._stop_event), daemon=True,
        )
        self.thread.start()
        logger.info("📡 Remote command poller started")

    def stop(self):
        if not self.running:
            return
        self.running = False
        self._stop_event.set()
        if self.thread is not None:
            self.thread.join(timeout=2)
        logger.info("📡 Remote command poller stopped")
