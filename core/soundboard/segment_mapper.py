"""
Schedule -> Segment Mapping

Derives, from raw per-sound schedules, which (sound, time) pairs fall inside
each timeline segment. The result has the soundsBySegment shape and is what a
preset stores as its whitelist.

Pure and deterministic: output order follows segment order, then catalog
order, then schedule order. No store access.
"""

from typing import Iterable, List, Sequence, Tuple, Union

from .time_range import contains, normalize_time
from .types import ManifestDocument, SegmentEntry, SoundsBySegment, TimelineSegment

CatalogEntry = Tuple[str, Sequence[str]]


def catalog_entries(manifest: ManifestDocument) -> List[CatalogEntry]:
    """(sound_id, [schedule times]) per sound, in manual sort order."""
    return [
        (sound.id, [schedule.time for schedule in manifest.schedules_for(sound.id)])
        for sound in manifest.sorted_sounds()
    ]


def build_mapping(segments: Iterable[TimelineSegment],
                  catalog: Union[ManifestDocument, Iterable[CatalogEntry]]) -> SoundsBySegment:
    """
    segmentId -> [SegmentEntry(soundId, time)] for every schedule inside the
    segment (bounds inclusive).

    Every segment gets a key, possibly with an empty list. Entries are not
    deduplicated: a sound with two schedules in range appears twice.
    """
    if isinstance(catalog, ManifestDocument):
        catalog = catalog_entries(catalog)
    entries = [(sound_id, [normalize_time(t) for t in times]) for sound_id, times in catalog]

    mapping: SoundsBySegment = {}
    for segment in segments:
        in_range = []
        for sound_id, times in entries:
            for time in times:
                if contains(time, segment.start_time, segment.end_time):
                    in_range.append(SegmentEntry(sound_id=sound_id, time=time))
        mapping[segment.id] = in_range
    return mapping
