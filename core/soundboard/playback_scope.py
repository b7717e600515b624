"""
Playback Scope - is a (sound, time) pair eligible to play?

Two paths:

    automatic trigger (schedule reached its time, timeline click)
        -> blocked by inactive schedule, mute overlay, or restriction map
    manual play (operator presses the pad)
        -> always allowed for an existing sound, mutes never apply

Pure functions over a TimelineDocument / ManifestDocument snapshot.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .errors import ValidationError
from .time_range import normalize_time, parse_timestamp, time_of, window
from .types import (
    ManifestDocument,
    Schedule,
    SegmentRestriction,
    TimelineDocument,
    restriction_for as _restriction_for,
)

# Decision reasons
ALLOWED = "ok"
INACTIVE = "inactive"
MUTED_SCHEDULE = "muted_schedule"
MUTED_SEGMENT = "muted_segment"
OUT_OF_SCOPE = "out_of_scope"
UNKNOWN_SOUND = "unknown_sound"


@dataclass
class ScopeDecision:
    allowed: bool
    reason: str = ALLOWED

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason}


def restriction_for(timeline: TimelineDocument, segment_id: str) -> SegmentRestriction:
    return _restriction_for(timeline.sounds_by_segment, segment_id)


def is_in_scope(timeline: TimelineDocument, sound_id: str, time: str) -> bool:
    """
    The first segment containing time decides. A time outside every segment
    is only in scope while no restriction is active at all.
    """
    segment = timeline.segment_containing(time)
    if segment is None:
        return not timeline.is_restricted
    return restriction_for(timeline, segment.id).allows(sound_id, time)


def auto_trigger_decision(timeline: TimelineDocument, schedule: Schedule) -> ScopeDecision:
    if not schedule.active:
        return ScopeDecision(False, INACTIVE)
    if schedule.id in timeline.muted_schedule_ids:
        return ScopeDecision(False, MUTED_SCHEDULE)
    muted_segments = set(timeline.muted_segment_ids)
    if any(s.id in muted_segments for s in timeline.segments_containing(schedule.time)):
        return ScopeDecision(False, MUTED_SEGMENT)
    if not is_in_scope(timeline, schedule.sound_id, schedule.time):
        return ScopeDecision(False, OUT_OF_SCOPE)
    return ScopeDecision(True)


def manual_play_allowed(manifest: ManifestDocument, sound_id: str) -> bool:
    return manifest.find_sound(sound_id) is not None


def _played_today(schedule: Schedule, at: datetime) -> bool:
    if not schedule.last_played:
        return False
    try:
        played = parse_timestamp(schedule.last_played)
    except ValidationError:
        # unreadable stamps from older documents count as never played
        return False
    return played.date() == at.date() and time_of(played) >= schedule.time


def due_schedules(manifest: ManifestDocument, timeline: TimelineDocument,
                  at: Optional[datetime] = None, window_seconds: int = 1) -> List[Schedule]:
    """
    Schedules whose time falls in [at - window_seconds, at], that pass the
    automatic-trigger decision and have not already fired today. Time order.
    """
    at = at or datetime.now()
    if at.tzinfo is not None:
        at = at.astimezone().replace(tzinfo=None)
    span = window(time_of(at), window_seconds)
    due = []
    for schedule in manifest.schedules:
        if manifest.find_sound(schedule.sound_id) is None:
            continue
        if not span.contains(schedule.time):
            continue
        if _played_today(schedule, at):
            continue
        if auto_trigger_decision(timeline, schedule).allowed:
            due.append(schedule)
    return sorted(due, key=lambda s: normalize_time(s.time))
