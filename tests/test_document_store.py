"""
CUEBOARD - Versioned Document Store Tests

Tests cover:
1. Default document on first read (and that it is persisted)
2. Version increments by exactly one per write
3. CAS rejection on a stale expected_version
4. Bounded retry in update()
5. Atomic persistence: failed rename leaves the previous document intact
6. Corrupt files load as the default document
"""

import json
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import core_registry as reg
from core.soundboard.document_store import VersionedDocumentStore, atomic_write_json, load_json
from core.soundboard.errors import ConflictError, PersistenceError, ValidationError
from core.soundboard.types import Category, ManifestDocument, Preset, PresetsDocument


@pytest.fixture
def store(tmp_path):
    return VersionedDocumentStore(str(tmp_path / "manifest.json"), ManifestDocument, "manifest")


def _add_category(name):
    def mutate(doc):
        doc.categories.append(Category(id=name, name=name))
        return doc
    return mutate


class TestRead:
    """read() never fails on a missing document."""

    def test_missing_file_returns_default_at_version_zero(self, store):
        doc, version = store.read()
        assert version == 0
        assert doc.sounds == [] and doc.schedules == [] and doc.categories == []

    def test_default_is_persisted(self, store):
        store.read()
        assert os.path.exists(store.path)
        with open(store.path) as f:
            assert json.load(f)["version"] == 0

    def test_corrupt_file_loads_default(self, store):
        with open(store.path, "w") as f:
            f.write("{not json")
        doc, version = store.read()
        assert version == 0
        assert doc.sounds == []

    def test_non_object_loads_default(self, store):
        with open(store.path, "w") as f:
            f.write("[1, 2, 3]")
        _, version = store.read()
        assert version == 0

    def test_unknown_fields_are_ignored(self, store):
        with open(store.path, "w") as f:
            json.dump({"version": 4, "sounds": [{"id": "a", "name": "A", "bogus": 1}]}, f)
        doc, version = store.read()
        assert version == 4
        assert doc.sounds[0].name == "A"


class TestWrite:
    """CAS write semantics."""

    def test_version_increments_by_one(self, store):
        _, v0 = store.read()
        _, v1 = store.write(_add_category("a"), expected_version=v0)
        _, v2 = store.write(_add_category("b"))
        assert (v0, v1, v2) == (0, 1, 2)
        doc, version = store.read()
        assert version == 2
        assert [c.id for c in doc.categories] == ["a", "b"]

    def test_stale_version_conflicts(self, store):
        _, v0 = store.read()
        store.write(_add_category("a"), expected_version=v0)
        with pytest.raises(ConflictError) as exc:
            store.write(_add_category("b"), expected_version=v0)
        assert exc.value.expected_version == 0
        assert exc.value.current_version == 1
        assert exc.value.status_code == 409
        doc, version = store.read()
        assert version == 1
        assert [c.id for c in doc.categories] == ["a"]

    def test_two_writers_same_version_one_wins(self, store):
        """Two clients that both read V: exactly one write lands."""
        _, v = store.read()
        store.write(_add_category("first"), expected_version=v)
        with pytest.raises(ConflictError):
            store.write(_add_category("second"), expected_version=v)
        assert store.current_version() == v + 1

    def test_mutate_error_aborts_write(self, store):
        store.read()

        def boom(doc):
            raise ValidationError("nope")

        with pytest.raises(ValidationError):
            store.write(boom)
        assert store.current_version() == 0

    def test_mutate_must_return_document(self, store):
        store.read()
        with pytest.raises(TypeError):
            store.write(lambda doc: None)
        assert store.current_version() == 0

    def test_version_survives_new_instance(self, store, tmp_path):
        store.write(_add_category("a"))
        other = VersionedDocumentStore(store.path, ManifestDocument, "manifest")
        assert other.read()[1] == 1

    def test_concurrent_writers_serialised(self, store):
        """In-process writers never lose an update."""
        store.read()

        def worker(n):
            for i in range(10):
                store.update(_add_category(f"{n}-{i}"), retries=50)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        doc, version = store.read()
        assert version == 40
        assert len(doc.categories) == 40

    def test_write_notifies_registry(self, store):
        events = []

        class FakeSocket:
            def emit(self, event, data):
                events.append((event, data))

        reg.socketio = FakeSocket()
        reg.audit_log = lambda event, **kw: events.append((event, kw))
        store.write(_add_category("a"))
        assert ("doc_write", {"document": "manifest", "version": 1}) in events
        assert ("manifest_update", {"version": 1}) in events


class TestUpdate:
    """update() = read + CAS write with bounded retries."""

    def test_retries_then_succeeds(self, store, monkeypatch):
        store.read()
        real_write = store.write
        calls = {"n": 0}

        def flaky_write(mutate, expected_version=None):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConflictError(expected_version, expected_version + 1, "manifest")
            return real_write(mutate, expected_version)

        monkeypatch.setattr(store, "write", flaky_write)
        _, version = store.update(_add_category("a"))
        assert version == 1
        assert calls["n"] == 2

    def test_gives_up_after_retries(self, store, monkeypatch):
        store.read()
        calls = {"n": 0}

        def always_conflict(mutate, expected_version=None):
            calls["n"] += 1
            raise ConflictError(expected_version, expected_version + 1, "manifest")

        monkeypatch.setattr(store, "write", always_conflict)
        with pytest.raises(ConflictError):
            store.update(_add_category("a"), retries=2)
        assert calls["n"] == 3

    def test_commit_with_version_is_single_cas(self, store):
        store.read()
        store.write(_add_category("a"))
        with pytest.raises(ConflictError):
            store.commit(_add_category("b"), expected_version=0)

    def test_commit_without_version_updates(self, store):
        _, version = store.commit(_add_category("a"))
        assert version == 1


class TestAtomicPersistence:
    """Temp file + rename."""

    def test_failed_rename_keeps_previous_document(self, store, monkeypatch):
        store.write(_add_category("a"))
        before = open(store.path).read()

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(PersistenceError):
            store.write(_add_category("b"))
        monkeypatch.undo()

        assert open(store.path).read() == before
        assert store.current_version() == 1
        leftovers = [n for n in os.listdir(os.path.dirname(store.path)) if ".tmp." in n]
        assert leftovers == []

    def test_unserialisable_data_raises_persistence_error(self, tmp_path):
        path = str(tmp_path / "x.json")
        with pytest.raises(PersistenceError):
            atomic_write_json(path, {"bad": object()})
        assert not os.path.exists(path)

    def test_load_json_missing(self, tmp_path):
        assert load_json(str(tmp_path / "nope.json")) == (False, None)

    def test_load_json_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("")
        assert load_json(str(path)) == (True, None)


class TestPresetsDocumentRoundTrip:

    def test_absent_map_stays_absent(self, tmp_path):
        store = VersionedDocumentStore(str(tmp_path / "presets.json"), PresetsDocument)

        def add(doc):
            doc.presets.append(Preset(id="p1", name="Show"))
            return doc

        store.write(add)
        with open(store.path) as f:
            raw = json.load(f)
        assert "soundsBySegment" not in raw["presets"][0]
        assert store.read()[0].presets[0].sounds_by_segment is None
