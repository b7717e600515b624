"""
Preset Repository - named timeline shapes with explicit sound whitelists

A preset is a frozen copy of a segment list plus an optional soundsBySegment
map. Applying a preset copies both into the timeline; editing the active preset
(upsert, rename, entry edits, mapping rebuild) propagates its name and map into
the timeline immediately.

Every operation is read + mutate + write on presets.json. Callers may pass the
version they read for a CAS check; without one the write is last-write-wins.
Values handed in or out are deep copies, so a preset never shares nested lists
with another preset or with the timeline.
"""

import logging
from typing import List, Optional, Tuple

from .document_store import VersionedDocumentStore
from .errors import NotFoundError, ValidationError
from .segment_mapper import build_mapping
from .time_range import contains, parse_time
from .timeline_state import TimelineState
from .types import (
    ManifestDocument,
    Preset,
    PresetsDocument,
    SegmentEntry,
    TimelineSegment,
    new_id,
)

logger = logging.getLogger('cueboard.presets')

COPY_SUFFIX = " (Kopie)"


def _require(doc: PresetsDocument, preset_id: str) -> Preset:
    preset = doc.find(preset_id)
    if preset is None:
        raise NotFoundError("preset not found", {"id": preset_id})
    return preset


def _first_segment_containing(preset: Preset, time: str) -> Optional[TimelineSegment]:
    for segment in preset.segments:
        if contains(time, segment.start_time, segment.end_time):
            return segment
    return None


class PresetRepository:
    """CRUD plus apply/duplicate/rename/capture over presets.json."""

    def __init__(self, store: VersionedDocumentStore, timeline: Optional[TimelineState] = None):
        self.store = store
        self.timeline = timeline

    # ============================================================
    # Reads
    # ============================================================

    def list(self) -> Tuple[List[Preset], int]:
        doc, version = self.store.read()
        return [p.copy() for p in doc.presets], version

    def get(self, preset_id: str) -> Preset:
        doc, _ = self.store.read()
        return _require(doc, preset_id).copy()

    # ============================================================
    # Writes
    # ============================================================

    def _commit_one(self, preset_id: str, mutate, expected_version: Optional[int]) -> Preset:
        """Write, then propagate the resulting preset into the timeline if active."""
        doc, _ = self.store.write(mutate, expected_version)
        preset = _require(doc, preset_id).copy()
        if self.timeline is not None:
            self.timeline.propagate(preset)
        return preset

    def upsert(self, preset: Preset, expected_version: Optional[int] = None) -> Preset:
        """
        Insert when the id is unseen, otherwise replace name and segments. The
        map is replaced only when preset.sounds_by_segment is not None.
        """
        if not preset.name.strip():
            raise ValidationError("preset name is required")
        incoming = preset.copy()
        if not incoming.id:
            incoming.id = new_id("preset")

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            existing = doc.find(incoming.id)
            if existing is None:
                doc.presets.append(incoming)
            else:
                existing.name = incoming.name
                existing.segments = incoming.segments
                if incoming.sounds_by_segment is not None:
                    existing.sounds_by_segment = incoming.sounds_by_segment
            return doc

        saved = self._commit_one(incoming.id, mutate, expected_version)
        logger.info(f"💾 Saved preset '{saved.name}' ({saved.id})")
        return saved

    def delete(self, preset_id: str, expected_version: Optional[int] = None) -> int:
        """Remove a preset. Unknown id is a no-op; the timeline is left as it is."""
        current, version = self.store.read()
        if current.find(preset_id) is None:
            return version

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            doc.presets = [p for p in doc.presets if p.id != preset_id]
            return doc

        _, version = self.store.write(mutate, expected_version)
        logger.info(f"🗑️ Deleted preset {preset_id}")
        return version

    def rename(self, preset_id: str, name: str, expected_version: Optional[int] = None) -> Preset:
        name = str(name or "").strip()
        if not name:
            raise ValidationError("preset name is required")

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            _require(doc, preset_id).name = name
            return doc

        return self._commit_one(preset_id, mutate, expected_version)

    def duplicate(self, preset_id: str, expected_version: Optional[int] = None) -> Preset:
        """Copy a preset under a fresh id with ' (Kopie)' appended to its name."""
        copy_id = new_id("preset")

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            clone = _require(doc, preset_id).copy()
            clone.id = copy_id
            clone.name = f"{clone.name}{COPY_SUFFIX}"
            doc.presets.append(clone)
            return doc

        doc, _ = self.store.write(mutate, expected_version)
        return _require(doc, copy_id).copy()

    def capture(self, name: Optional[str] = None,
                segments: Optional[List[TimelineSegment]] = None,
                expected_version: Optional[int] = None) -> Preset:
        """
        Save a segment list as a new preset. Without segments, the timeline's
        current segments and restriction map are captured.
        """
        sounds_by_segment = None
        if segments is None:
            if self.timeline is None:
                raise ValidationError("segments are required")
            timeline_doc, _ = self.timeline.get()
            segments = timeline_doc.segments
            sounds_by_segment = timeline_doc.sounds_by_segment or None

        preset_id = new_id("preset")
        wanted_name = str(name or "").strip()

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            doc.presets.append(Preset(
                id=preset_id,
                name=wanted_name or f"Preset {len(doc.presets) + 1}",
                segments=segments,
                sounds_by_segment=sounds_by_segment,
            ).copy())
            return doc

        doc, _ = self.store.write(mutate, expected_version)
        preset = _require(doc, preset_id).copy()
        logger.info(f"📸 Captured preset '{preset.name}' with {len(preset.segments)} segments")
        return preset

    def apply(self, preset_id: str):
        """Copy preset segments + map into the timeline. Returns (timeline, version)."""
        if self.timeline is None:
            raise ValidationError("no timeline configured")
        return self.timeline.apply_preset(self.get(preset_id))

    def build_mapping(self, preset_id: str, catalog: ManifestDocument,
                      expected_version: Optional[int] = None) -> Preset:
        """Store the schedule-derived mapping for the preset's segments as its whitelist."""

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            preset = _require(doc, preset_id)
            preset.sounds_by_segment = build_mapping(preset.segments, catalog)
            return doc

        return self._commit_one(preset_id, mutate, expected_version)

    # ============================================================
    # Entry edits (schedule editor)
    # ============================================================

    def add_entry(self, preset_id: str, sound_id: str, time: str,
                  expected_version: Optional[int] = None) -> Preset:
        """
        Whitelist (sound, time) in the first segment containing time. Nothing
        changes when that segment is unrestricted or the pair is already there.
        """
        if not sound_id:
            raise ValidationError("soundId is required")
        time = parse_time(time)

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            _add(_require(doc, preset_id), sound_id, time)
            return doc

        return self._commit_one(preset_id, mutate, expected_version)

    def remove_entry(self, preset_id: str, sound_id: str, time: str,
                     expected_version: Optional[int] = None) -> Preset:
        """Drop matching entries from every segment. Keys stay present."""
        if not sound_id:
            raise ValidationError("soundId is required")
        time = parse_time(time)

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            _remove(_require(doc, preset_id), sound_id, time)
            return doc

        return self._commit_one(preset_id, mutate, expected_version)

    def move_entry(self, preset_id: str, sound_id: str, old_time: str, new_time: str,
                   expected_version: Optional[int] = None) -> Preset:
        """Schedule moved in time: remove the old pair, add the new one, one write."""
        if not sound_id:
            raise ValidationError("soundId is required")
        old_time = parse_time(old_time)
        new_time = parse_time(new_time)

        def mutate(doc: PresetsDocument) -> PresetsDocument:
            preset = _require(doc, preset_id)
            _remove(preset, sound_id, old_time)
            _add(preset, sound_id, new_time)
            return doc

        return self._commit_one(preset_id, mutate, expected_version)


def _add(preset: Preset, sound_id: str, time: str):
    segment = _first_segment_containing(preset, time)
    if segment is None or not preset.sounds_by_segment or segment.id not in preset.sounds_by_segment:
        return
    entries = preset.sounds_by_segment[segment.id]
    entry = SegmentEntry(sound_id=sound_id, time=time)
    if entry not in entries:
        entries.append(entry)


def _remove(preset: Preset, sound_id: str, time: str):
    if not preset.sounds_by_segment:
        return
    for segment_id, entries in preset.sounds_by_segment.items():
        preset.sounds_by_segment[segment_id] = [e for e in entries if not e.matches(sound_id, time)]
