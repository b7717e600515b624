"""
Versioned Document Store - read / compare-and-swap write / atomic persist

Each logical collection (manifest, timeline, presets) is one JSON document on
disk carrying a top-level "version" counter. Every mutation funnels through
VersionedDocumentStore.write():

    doc, version = store.read()
    doc, version = store.write(lambda d: transform(d), expected_version=version)

WRITE PATH:
1. Load the on-disk document fresh (never the caller's copy)
2. If expected_version is given and differs -> ConflictError, nothing written
3. mutate(document) -> new document (exceptions abort the write)
4. Serialize to a temp file in the same directory, fsync, os.replace()
5. version = loaded version + 1

CONCURRENCY:
In-process writers to one path are serialized by a per-path lock shared by all
store instances (single writer per document). The rename only protects against
torn files; it does not stop two processes that both read V from both writing
V+1. Callers that care about lost updates pass expected_version, or use
update(), which wraps read + CAS write in a bounded retry loop.
"""

import itertools
import json
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

import core_registry as reg

from .errors import ConflictError, PersistenceError

logger = logging.getLogger('cueboard.store')

DEFAULT_CAS_RETRIES = 3

D = TypeVar("D")

# ============================================================
# Per-path write locks
# ============================================================

_path_locks: Dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()
_tmp_counter = itertools.count(1)


def _lock_for(path: str) -> threading.Lock:
    key = os.path.abspath(path)
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _path_locks[key] = lock
        return lock


# ============================================================
# Atomic JSON file helpers
# ============================================================

def atomic_write_json(path: str, data: Any, indent: Optional[int] = 2):
    """
    Write JSON to path via temp file + rename.

    Raises PersistenceError; on failure the temp file is removed and the
    previous content of path is untouched.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = f"{path}.tmp.{os.getpid()}.{next(_tmp_counter)}"
    try:
        os.makedirs(directory, exist_ok=True)
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"❌ Failed to persist {path}: {e}")
        try:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        except OSError as cleanup_error:
            logger.warning(f"⚠️ Could not remove temp file {tmp_path}: {cleanup_error}")
        raise PersistenceError(f"failed to write {os.path.basename(path)}", {"reason": str(e)}) from e


def load_json(path: str) -> Tuple[bool, Any]:
    """
    Returns (exists, data). A present but unreadable or non-JSON file yields
    (True, None); callers treat that as the default document.
    """
    if not os.path.exists(path):
        return False, None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = f.read()
    except OSError as e:
        logger.warning(f"⚠️ Could not read {path}: {e}")
        return True, None
    if not raw.strip():
        return True, None
    try:
        return True, json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"⚠️ {path} is not valid JSON, using defaults: {e}")
        return True, None


# ============================================================
# Store
# ============================================================

class VersionedDocumentStore:
    """
    Versioned JSON document with optimistic concurrency control.

    schema is a class providing default(), from_dict(dict) and to_dict(); the
    store keeps the version outside the schema and injects it on write.
    """

    def __init__(self, path: str, schema, name: Optional[str] = None,
                 retries: int = DEFAULT_CAS_RETRIES):
        self.path = path
        self.schema = schema
        self.name = name or os.path.splitext(os.path.basename(path))[0]
        self.retries = retries
        self._lock = _lock_for(path)

    # ---- Encoding ----

    def _decode(self, raw) -> Tuple[Any, int]:
        if not isinstance(raw, dict):
            return self.schema.default(), 0
        try:
            version = max(0, int(raw.get("version", 0)))
        except (TypeError, ValueError):
            version = 0
        return self.schema.from_dict(raw), version

    def _encode(self, document, version: int) -> dict:
        data = {"version": version}
        data.update(document.to_dict())
        return data

    def _load(self) -> Tuple[Any, int]:
        _, raw = load_json(self.path)
        return self._decode(raw)

    # ---- Public API ----

    def read(self) -> Tuple[Any, int]:
        """
        Current (document, version). Never fails on a missing file: returns the
        default document at version 0 and persists it.
        """
        exists, raw = load_json(self.path)
        if exists:
            return self._decode(raw)

        document = self.schema.default()
        with self._lock:
            if os.path.exists(self.path):
                return self._load()
            try:
                atomic_write_json(self.path, self._encode(document, 0))
                logger.info(f"✅ Initialized {self.name} document at {self.path}")
            except PersistenceError as e:
                logger.warning(f"⚠️ Could not initialize {self.name} document: {e.message}")
        return document, 0

    def write(self, mutate: Callable[[D], D], expected_version: Optional[int] = None) -> Tuple[D, int]:
        """
        Load fresh, check expected_version, apply mutate, persist as version + 1.

        Raises ConflictError on a version mismatch and PersistenceError when the
        file cannot be replaced; in both cases nothing is written.
        """
        with self._lock:
            current, version = self._load()
            if expected_version is not None and int(expected_version) != version:
                logger.info(f"🔒 {self.name}: CAS rejected (expected {expected_version}, found {version})")
                raise ConflictError(int(expected_version), version, self.name)

            updated = mutate(current)
            if updated is None:
                raise TypeError(f"{self.name}: mutate must return the document")

            new_version = version + 1
            atomic_write_json(self.path, self._encode(updated, new_version))

        logger.debug(f"{self.name}: committed version {new_version}")
        if reg.audit_log:
            reg.audit_log('doc_write', document=self.name, version=new_version)
        if reg.socketio:
            reg.socketio.emit(f'{self.name}_update', {'version': new_version})
        return updated, new_version

    def update(self, mutate: Callable[[D], D], retries: Optional[int] = None) -> Tuple[D, int]:
        """
        read + CAS write as one logical attempt, retried on ConflictError at
        most `retries` times before the conflict is surfaced.
        """
        attempts = self.retries if retries is None else retries
        retried = 0
        while True:
            _, version = self.read()
            try:
                return self.write(mutate, expected_version=version)
            except ConflictError:
                retried += 1
                if retried > attempts:
                    logger.warning(f"⚠️ {self.name}: giving up after {retried} CAS attempts")
                    raise
                logger.info(f"🔁 {self.name}: CAS conflict, retrying ({retried}/{attempts})")

    def commit(self, mutate: Callable[[D], D], expected_version: Optional[int] = None) -> Tuple[D, int]:
        """Single CAS write when the caller read a version, bounded retries otherwise."""
        if expected_version is not None:
            return self.write(mutate, expected_version=expected_version)
        return self.update(mutate)

    def current_version(self) -> int:
        return self._load()[1]
