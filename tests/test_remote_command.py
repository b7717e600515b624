"""
CUEBOARD - Remote Command Channel Tests

Tests cover:
1. Action normalisation and validation
2. Strictly increasing ts even with a frozen clock
3. Poller hands out each command once and ignores stale ones
4. Poll loop dispatch and shutdown
"""

import json
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.soundboard.errors import ValidationError
from core.soundboard.remote_command import RemoteCommandChannel, RemoteCommandPoller


@pytest.fixture
def channel(tmp_path):
    return RemoteCommandChannel(str(tmp_path / "remote.json"), clock=lambda: 1000)


class TestChannel:

    def test_empty_slot(self, channel):
        assert channel.get() is None

    def test_send_lowercases_action(self, channel):
        command = channel.send("  PLAY ", "S1")
        assert (command.action, command.sound_id, command.ts) == ("play", "S1", 1000)
        with open(channel.path) as f:
            assert json.load(f) == {"action": "play", "soundId": "S1", "ts": 1000}

    def test_empty_action_rejected(self, channel):
        with pytest.raises(ValidationError):
            channel.send("   ")
        assert channel.get() is None

    def test_last_write_wins(self, channel):
        channel.send("play", "S1")
        channel.send("pause")
        command = channel.get()
        assert command.action == "pause"
        assert command.sound_id is None

    def test_ts_strictly_increasing_with_same_clock(self, channel):
        first = channel.send("play", "S1")
        second = channel.send("play", "S2")
        assert second.ts == first.ts + 1

    def test_corrupt_slot_reads_as_empty(self, channel):
        with open(channel.path, "w") as f:
            f.write("garbage")
        assert channel.get() is None
        assert channel.send("play").ts == 1000


class TestPoller:

    def test_existing_command_skipped_on_start(self, channel):
        channel.send("play", "S1")
        poller = RemoteCommandPoller(channel)
        assert poller.poll() is None

    def test_new_command_handed_out_once(self, channel):
        poller = RemoteCommandPoller(channel)
        channel.send("play", "S1")
        assert poller.poll().sound_id == "S1"
        assert poller.poll() is None

    def test_stale_ts_ignored(self, channel):
        poller = RemoteCommandPoller(channel)
        channel.send("play", "S1")
        poller.poll()
        # an older command rewritten into the slot is not replayed
        with open(channel.path, "w") as f:
            json.dump({"action": "play", "soundId": "S0", "ts": 5}, f)
        assert poller.poll() is None

    def test_replay_when_not_skipping(self, channel):
        channel.send("play", "S1")
        poller = RemoteCommandPoller(channel, skip_existing=False)
        assert poller.poll().action == "play"

    def test_run_dispatches_and_stops(self, channel):
        poller = RemoteCommandPoller(channel)
        stop = threading.Event()
        seen = []

        def on_play(command):
            seen.append(command.sound_id)
            stop.set()

        channel.send("play", "S7")
        worker = threading.Thread(target=poller.run, args=({"play": on_play}, 0.01, stop))
        worker.start()
        worker.join(timeout=5)
        assert not worker.is_alive()
        assert seen == ["S7"]

    def test_start_and_stop_thread(self, channel):
        poller = RemoteCommandPoller(channel)
        poller.start({}, interval=0.01)
        assert poller.running
        poller.stop()
        assert not poller.running
        assert not poller.thread.is_alive()
