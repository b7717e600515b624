"""
CUEBOARD - Playback Scope Tests

Tests cover:
1. Restriction variant: absent key vs present (even empty) key
2. Scope for times outside every segment
3. Legacy entries without a time
4. Automatic trigger blocked by inactive / muted / out of scope
5. Manual play ignores mutes
6. Due schedules in a window, skipping ones already played today
"""

import os
import sys
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.soundboard.playback_scope import (
    INACTIVE,
    MUTED_SCHEDULE,
    MUTED_SEGMENT,
    OUT_OF_SCOPE,
    auto_trigger_decision,
    due_schedules,
    is_in_scope,
    manual_play_allowed,
    restriction_for,
)
from core.soundboard.types import (
    ManifestDocument,
    Schedule,
    SegmentEntry,
    SegmentRestriction,
    Sound,
    TimelineDocument,
    TimelineSegment,
)

SEGMENTS = [
    TimelineSegment(id="doors", title="Doors", start_time="18:00:00", end_time="19:00:00"),
    TimelineSegment(id="show", title="Show", start_time="19:00:01", end_time="21:00:00"),
]


def _timeline(**kwargs):
    return TimelineDocument(segments=list(SEGMENTS), **kwargs)


class TestRestriction:

    def test_absent_key_is_unrestricted(self):
        timeline = _timeline(sounds_by_segment={"show": []})
        assert restriction_for(timeline, "doors") == SegmentRestriction.unrestricted()

    def test_present_empty_key_restricts_everything(self):
        timeline = _timeline(sounds_by_segment={"show": []})
        assert restriction_for(timeline, "show") == SegmentRestriction.restricted_to([])
        assert not is_in_scope(timeline, "S1", "20:00:00")
        assert is_in_scope(timeline, "S1", "18:30:00")

    def test_legacy_entry_matches_any_time(self):
        timeline = _timeline(sounds_by_segment={"show": [SegmentEntry("S1")]})
        assert is_in_scope(timeline, "S1", "20:00:00")
        assert is_in_scope(timeline, "S1", "19:30")
        assert not is_in_scope(timeline, "S2", "20:00:00")

    def test_entry_time_must_match(self):
        timeline = _timeline(sounds_by_segment={"show": [SegmentEntry("S1", "20:00:00")]})
        assert is_in_scope(timeline, "S1", "20:00")
        assert not is_in_scope(timeline, "S1", "20:30:00")


class TestOutsideSegments:

    def test_in_scope_when_nothing_restricted(self):
        assert is_in_scope(_timeline(), "S1", "08:00:00")

    def test_out_of_scope_when_any_restriction_active(self):
        assert not is_in_scope(_timeline(sounds_by_segment={"show": []}), "S1", "08:00:00")


class TestAutoTrigger:

    def test_allowed(self):
        decision = auto_trigger_decision(_timeline(), Schedule(id="a", sound_id="S1", time="18:30:00"))
        assert decision.allowed

    def test_inactive(self):
        schedule = Schedule(id="a", sound_id="S1", time="18:30:00", active=False)
        assert auto_trigger_decision(_timeline(), schedule).reason == INACTIVE

    def test_muted_schedule_blocked_but_manual_allowed(self):
        manifest = ManifestDocument(sounds=[Sound(id="S1", name="Gong")],
                                    schedules=[Schedule(id="a", sound_id="S1", time="18:30:00")])
        timeline = _timeline(muted_schedule_ids=["a"])
        decision = auto_trigger_decision(timeline, manifest.schedules[0])
        assert not decision.allowed
        assert decision.reason == MUTED_SCHEDULE
        assert manual_play_allowed(manifest, "S1")

    def test_muted_segment(self):
        timeline = _timeline(muted_segment_ids=["doors"])
        schedule = Schedule(id="a", sound_id="S1", time="19:00:00")
        assert auto_trigger_decision(timeline, schedule).reason == MUTED_SEGMENT

    def test_muted_overlapping_segment_blocks(self):
        """Mute applies when any segment containing the time is muted, not only the first."""
        overlap = TimelineSegment(id="late", title="Late", start_time="18:45:00", end_time="22:00:00")
        timeline = TimelineDocument(segments=list(SEGMENTS) + [overlap], muted_segment_ids=["late"])
        schedule = Schedule(id="a", sound_id="S1", time="18:50:00")
        assert auto_trigger_decision(timeline, schedule).reason == MUTED_SEGMENT

    def test_out_of_scope(self):
        timeline = _timeline(sounds_by_segment={"doors": [SegmentEntry("S2", "18:30:00")]})
        schedule = Schedule(id="a", sound_id="S1", time="18:30:00")
        assert auto_trigger_decision(timeline, schedule).reason == OUT_OF_SCOPE

    def test_manual_play_unknown_sound(self):
        assert not manual_play_allowed(ManifestDocument(), "ghost")


class TestDueSchedules:

    def _manifest(self, **schedule_kwargs):
        return ManifestDocument(
            sounds=[Sound(id="S1", name="Gong")],
            schedules=[Schedule(id="a", sound_id="S1", time="18:30:00", **schedule_kwargs)],
        )

    def test_due_within_window(self):
        at = datetime(2024, 6, 1, 18, 30, 2)
        assert [s.id for s in due_schedules(self._manifest(), _timeline(), at, 5)] == ["a"]

    def test_not_due_outside_window(self):
        at = datetime(2024, 6, 1, 18, 31, 0)
        assert due_schedules(self._manifest(), _timeline(), at, 5) == []

    def test_already_played_today_skipped(self):
        at = datetime(2024, 6, 1, 18, 30, 2)
        manifest = self._manifest(last_played="2024-06-01T18:30:00")
        assert due_schedules(manifest, _timeline(), at, 5) == []

    def test_played_yesterday_is_due(self):
        at = datetime(2024, 6, 1, 18, 30, 2)
        manifest = self._manifest(last_played="2024-05-31T18:30:00")
        assert len(due_schedules(manifest, _timeline(), at, 5)) == 1

    def test_muted_not_due(self):
        at = datetime(2024, 6, 1, 18, 30, 2)
        assert due_schedules(self._manifest(), _timeline(muted_schedule_ids=["a"]), at, 5) == []

    def test_utc_stamp_from_browser_counts_as_played(self):
        """A trailing-Z stamp is compared in local time, so the cue does not fire twice."""
        at = datetime(2024, 6, 1, 18, 30, 1)
        played_utc = datetime(2024, 6, 1, 18, 30, 0).astimezone(timezone.utc)
        manifest = self._manifest(last_played=played_utc.strftime('%Y-%m-%dT%H:%M:%S.000Z'))
        assert due_schedules(manifest, _timeline(), at, 5) == []

    def test_unreadable_stamp_counts_as_never_played(self):
        at = datetime(2024, 6, 1, 18, 30, 2)
        manifest = self._manifest(last_played="yesterday-ish")
        assert len(due_schedules(manifest, _timeline(), at, 5)) == 1
