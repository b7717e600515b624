"""
Timeline State - repository for the single timeline document

Holds the working segments, which preset is active, the active restriction map
(soundsBySegment, empty = unrestricted) and the mute overlay.

Timeline writes are last-write-wins unless the caller threads a version
through; the mute sets are always replaced wholesale by the client, so a lost
update only ever loses a mute toggle.
"""

import logging
from typing import List, Optional, Tuple

from .document_store import VersionedDocumentStore
from .types import (
    Preset,
    SoundsBySegment,
    TimelineDocument,
    TimelineSegment,
    copy_sounds_by_segment,
)

logger = logging.getLogger('cueboard.timeline')

# (activePresetId, activePresetName)
PresetMeta = Tuple[Optional[str], Optional[str]]


class _PresetNoLongerActive(Exception):
    """Aborts a propagate write; the store discards the mutation."""


def _dedupe(ids) -> List[str]:
    return list(dict.fromkeys(str(i) for i in (ids or []) if i is not None and str(i) != ""))


class TimelineState:

    def __init__(self, store: VersionedDocumentStore):
        self.store = store

    def get(self) -> Tuple[TimelineDocument, int]:
        return self.store.read()

    def save(self, muted_schedule_ids, muted_segment_ids,
             segments: Optional[List[TimelineSegment]] = None,
             preset_meta: Optional[PresetMeta] = None,
             sounds_by_segment: Optional[SoundsBySegment] = None,
             expected_version: Optional[int] = None) -> Tuple[TimelineDocument, int]:
        """
        Partial save. None for segments, preset_meta or sounds_by_segment keeps
        what is stored; the two mute lists are always replaced (deduplicated,
        first occurrence wins).
        """
        muted_schedules = _dedupe(muted_schedule_ids)
        muted_segments = _dedupe(muted_segment_ids)

        def mutate(doc: TimelineDocument) -> TimelineDocument:
            doc.muted_schedule_ids = muted_schedules
            doc.muted_segment_ids = muted_segments
            if segments is not None:
                doc.segments = [TimelineSegment(**vars(s)) for s in segments]
            if preset_meta is not None:
                doc.active_preset_id, doc.active_preset_name = preset_meta
            if sounds_by_segment is not None:
                doc.sounds_by_segment = copy_sounds_by_segment(sounds_by_segment)
            return doc

        return self.store.write(mutate, expected_version)

    def apply_preset(self, preset: Preset) -> Tuple[TimelineDocument, int]:
        """
        Make preset the active one: its segments and map replace the timeline's.
        A preset without a map leaves the timeline unrestricted. Mutes are kept.
        """
        snapshot = preset.copy()

        def mutate(doc: TimelineDocument) -> TimelineDocument:
            doc.segments = snapshot.segments
            doc.sounds_by_segment = snapshot.sounds_by_segment or {}
            doc.active_preset_id = snapshot.id
            doc.active_preset_name = snapshot.name
            return doc

        result = self.store.write(mutate)
        logger.info(f"🎛️ Applied preset '{preset.name}' ({preset.id})")
        return result

    def propagate(self, preset: Preset) -> Optional[int]:
        """
        Push name and map of an edited preset into the timeline if it is the
        active one. Returns the new timeline version, or None when untouched.
        """
        doc, _ = self.store.read()
        if doc.active_preset_id != preset.id:
            return None
        snapshot = preset.copy()

        def mutate(current: TimelineDocument) -> TimelineDocument:
            # re-checked against the fresh document
            if current.active_preset_id != snapshot.id:
                raise _PresetNoLongerActive()
            current.active_preset_name = snapshot.name
            current.sounds_by_segment = snapshot.sounds_by_segment or {}
            return current

        try:
            _, version = self.store.write(mutate)
        except _PresetNoLongerActive:
            return None
        logger.debug(f"timeline: propagated preset {preset.id} (version {version})")
        return version
