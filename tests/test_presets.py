"""
CUEBOARD - Preset Repository Tests

Tests cover:
1. Upsert insert/replace, map kept when omitted
2. Apply copies segments + map into the timeline
3. Live propagation when the active preset is edited
4. Duplicate / capture naming and no aliasing between copies
5. Entry edits (add / remove / move) and the unrestricted no-op
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.soundboard.document_store import VersionedDocumentStore
from core.soundboard.errors import NotFoundError, ValidationError
from core.soundboard.presets import PresetRepository
from core.soundboard.timeline_state import TimelineState
from core.soundboard.types import (
    ManifestDocument,
    Preset,
    PresetsDocument,
    Schedule,
    SegmentEntry,
    Sound,
    TimelineDocument,
    TimelineSegment,
)


@pytest.fixture
def timeline(tmp_path):
    return TimelineState(VersionedDocumentStore(str(tmp_path / "timeline.json"), TimelineDocument))


@pytest.fixture
def presets(tmp_path, timeline):
    store = VersionedDocumentStore(str(tmp_path / "presets.json"), PresetsDocument)
    return PresetRepository(store, timeline)


def _segments():
    return [
        TimelineSegment(id="morning", title="Morning", start_time="08:00:00", end_time="12:00:00"),
        TimelineSegment(id="noon", title="Noon", start_time="12:00:01", end_time="14:00:00"),
    ]


def _preset(preset_id="p1", name="Show", sounds_by_segment=None):
    return Preset(id=preset_id, name=name, segments=_segments(), sounds_by_segment=sounds_by_segment)


class TestUpsert:

    def test_insert_then_replace(self, presets):
        presets.upsert(_preset(name="Show"))
        presets.upsert(_preset(name="Show v2"))
        listed, version = presets.list()
        assert [p.name for p in listed] == ["Show v2"]
        assert version == 2

    def test_map_kept_when_omitted(self, presets):
        mapping = {"morning": [SegmentEntry("S1", "09:00:00")]}
        presets.upsert(_preset(sounds_by_segment=mapping))
        presets.upsert(_preset(name="Renamed", sounds_by_segment=None))
        assert presets.get("p1").sounds_by_segment == mapping

    def test_map_replaced_when_supplied(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": [SegmentEntry("S1", "09:00:00")]}))
        presets.upsert(_preset(sounds_by_segment={}))
        assert presets.get("p1").sounds_by_segment == {}

    def test_missing_id_is_generated(self, presets):
        saved = presets.upsert(Preset(id="", name="Fresh"))
        assert saved.id.startswith("preset_")

    def test_name_required(self, presets):
        with pytest.raises(ValidationError):
            presets.upsert(Preset(id="p1", name="  "))

    def test_get_unknown(self, presets):
        with pytest.raises(NotFoundError):
            presets.get("nope")

    def test_delete_unknown_is_noop(self, presets):
        presets.upsert(_preset())
        assert presets.delete("nope") == 1
        presets.delete("p1")
        assert presets.list()[0] == []


class TestApply:

    def test_apply_copies_segments_and_map(self, presets, timeline):
        mapping = {"morning": [SegmentEntry("S1", "09:00:00")]}
        presets.upsert(_preset(sounds_by_segment=mapping))
        doc, _ = presets.apply("p1")
        assert doc.active_preset_id == "p1"
        assert doc.active_preset_name == "Show"
        assert [s.id for s in doc.segments] == ["morning", "noon"]
        assert timeline.get()[0].sounds_by_segment == mapping

    def test_apply_preset_without_map_clears_restriction(self, presets, timeline):
        presets.upsert(_preset("restricted", sounds_by_segment={"morning": []}))
        presets.upsert(_preset("open"))
        presets.apply("restricted")
        assert timeline.get()[0].is_restricted
        presets.apply("open")
        assert not timeline.get()[0].is_restricted

    def test_apply_keeps_mutes(self, presets, timeline):
        timeline.save(["sch1"], ["morning"])
        presets.upsert(_preset())
        doc, _ = presets.apply("p1")
        assert doc.muted_schedule_ids == ["sch1"]
        assert doc.muted_segment_ids == ["morning"]


class TestPropagation:

    def test_rename_active_preset_updates_timeline(self, presets, timeline):
        presets.upsert(_preset())
        presets.apply("p1")
        presets.rename("p1", "Evening")
        assert timeline.get()[0].active_preset_name == "Evening"

    def test_entry_edit_active_preset_updates_timeline_map(self, presets, timeline):
        presets.upsert(_preset(sounds_by_segment={"morning": []}))
        presets.apply("p1")
        presets.add_entry("p1", "S1", "09:30")
        assert timeline.get()[0].sounds_by_segment == {"morning": [SegmentEntry("S1", "09:30:00")]}

    def test_inactive_preset_does_not_touch_timeline(self, presets, timeline):
        presets.upsert(_preset("p1"))
        presets.upsert(_preset("p2", name="Other"))
        presets.apply("p1")
        _, before = timeline.get()
        presets.rename("p2", "Renamed")
        doc, after = timeline.get()
        assert after == before
        assert doc.active_preset_name == "Show"


class TestCopies:

    def test_duplicate_suffix_and_fresh_id(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": [SegmentEntry("S1", "09:00:00")]}))
        copy = presets.duplicate("p1")
        assert copy.id != "p1"
        assert copy.name == "Show (Kopie)"

    def test_duplicate_does_not_alias(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": []}))
        copy = presets.duplicate("p1")
        presets.add_entry(copy.id, "S1", "09:00")
        assert presets.get("p1").sounds_by_segment == {"morning": []}
        assert presets.get(copy.id).sounds_by_segment == {"morning": [SegmentEntry("S1", "09:00:00")]}

    def test_returned_values_are_copies(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": []}))
        fetched = presets.get("p1")
        fetched.sounds_by_segment["morning"].append(SegmentEntry("S9", "09:00:00"))
        fetched.segments.clear()
        again = presets.get("p1")
        assert again.sounds_by_segment == {"morning": []}
        assert len(again.segments) == 2

    def test_capture_default_name_from_timeline(self, presets, timeline):
        timeline.save([], [], segments=_segments(), sounds_by_segment={"noon": []})
        captured = presets.capture()
        assert captured.name == "Preset 1"
        assert [s.id for s in captured.segments] == ["morning", "noon"]
        assert captured.sounds_by_segment == {"noon": []}

    def test_capture_explicit_segments(self, presets):
        captured = presets.capture("Gala", segments=_segments()[:1])
        assert captured.name == "Gala"
        assert captured.sounds_by_segment is None


class TestBuildMapping:

    def test_mapping_stored_on_preset(self, presets):
        presets.upsert(_preset())
        manifest = ManifestDocument(
            sounds=[Sound(id="S1", name="A")],
            schedules=[Schedule(id="x", sound_id="S1", time="09:00:00")],
        )
        saved = presets.build_mapping("p1", manifest)
        assert saved.sounds_by_segment == {"morning": [SegmentEntry("S1", "09:00:00")], "noon": []}


class TestEntryEdits:

    def test_add_to_unrestricted_segment_is_noop(self, presets):
        presets.upsert(_preset(sounds_by_segment={"noon": []}))
        saved = presets.add_entry("p1", "S1", "09:00")
        assert "morning" not in saved.sounds_by_segment

    def test_add_without_map_is_noop(self, presets):
        presets.upsert(_preset())
        assert presets.add_entry("p1", "S1", "09:00").sounds_by_segment is None

    def test_add_once(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": []}))
        presets.add_entry("p1", "S1", "09:00")
        saved = presets.add_entry("p1", "S1", "09:00:00")
        assert saved.sounds_by_segment["morning"] == [SegmentEntry("S1", "09:00:00")]

    def test_remove_keeps_key(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": [SegmentEntry("S1", "09:00:00")]}))
        saved = presets.remove_entry("p1", "S1", "09:00")
        assert saved.sounds_by_segment == {"morning": []}

    def test_move_between_segments(self, presets):
        presets.upsert(_preset(sounds_by_segment={
            "morning": [SegmentEntry("S1", "09:00:00")],
            "noon": [],
        }))
        saved = presets.move_entry("p1", "S1", "09:00", "13:00")
        assert saved.sounds_by_segment == {"morning": [], "noon": [SegmentEntry("S1", "13:00:00")]}

    def test_invalid_time_rejected(self, presets):
        presets.upsert(_preset(sounds_by_segment={"morning": []}))
        with pytest.raises(ValidationError):
            presets.add_entry("p1", "S1", "9am")
