"""
CUEBOARD Core - Playback Blueprint
Routes: /api/playback/*
Dependencies: catalog (SoundCatalog), timeline (TimelineState), remote (RemoteCommandChannel)

Playback itself happens in the host browser; these routes answer scope
questions and hand play commands to the host through the remote slot.
"""

import logging
from datetime import datetime

from flask import Blueprint, jsonify, request

from api_support import ROLE_ADMIN, get_payload, require_role, str_field
from core.soundboard import playback_scope
from core.soundboard.errors import NotFoundError, ValidationError
from core.soundboard.time_range import parse_time, time_of
from core.soundboard.types import Schedule

playback_bp = Blueprint('playback', __name__)

logger = logging.getLogger('cueboard.playback')

# Dependencies injected at registration time
_catalog = None
_timeline = None
_remote = None


def init_app(catalog, timeline, remote):
    """Initialize blueprint with required dependencies."""
    global _catalog, _timeline, _remote
    _catalog = catalog
    _timeline = timeline
    _remote = remote


def _parse_at(value):
    """?at= accepts an ISO timestamp or a bare HH:MM[:SS] for today."""
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    clock = parse_time(value)
    hours, minutes, seconds = (int(p) for p in clock.split(':'))
    return datetime.now().replace(hour=hours, minute=minutes, second=seconds, microsecond=0)


@playback_bp.route('/api/playback/scope', methods=['GET'])
@require_role()
def get_scope():
    """
    Scope answer for ?soundId=&time=. autoAllowed is evaluated against the
    sound's schedule at that time, if it has one.
    """
    sound_id = str_field(request.args, 'soundId', True, 'sound_id')
    time = parse_time(request.args.get('time') or time_of())
    manifest, _ = _catalog.snapshot()
    timeline, _ = _timeline.get()

    schedule = next((s for s in manifest.schedules_for(sound_id) if s.time == time), None)
    if schedule is None:
        schedule = Schedule(id='', sound_id=sound_id, time=time)
    decision = playback_scope.auto_trigger_decision(timeline, schedule)

    return jsonify({
        'soundId': sound_id,
        'time': time,
        'inScope': playback_scope.is_in_scope(timeline, sound_id, time),
        'autoAllowed': decision.allowed,
        'reason': decision.reason,
        'manualAllowed': playback_scope.manual_play_allowed(manifest, sound_id),
    })


@playback_bp.route('/api/playback/due', methods=['GET'])
@require_role()
def get_due():
    """Schedules that should fire now: ?at=&window=seconds (default 1)."""
    at = _parse_at(request.args.get('at'))
    window = request.args.get('window', 1, type=int)
    if window is None or window < 0:
        raise ValidationError("window must be a non-negative integer")
    manifest, _ = _catalog.snapshot()
    timeline, _ = _timeline.get()
    due = playback_scope.due_schedules(manifest, timeline, at, window)
    return jsonify({'at': at.isoformat(), 'schedules': [s.to_dict() for s in due]})


@playback_bp.route('/api/playback/play', methods=['POST'])
@require_role()
def manual_play():
    """Manual play. Mutes and restrictions never block it."""
    data = get_payload()
    sound_id = str_field(data, 'soundId', True, 'sound_id')
    manifest, _ = _catalog.snapshot()
    if not playback_scope.manual_play_allowed(manifest, sound_id):
        raise NotFoundError("sound not found", {"id": sound_id})
    command = _remote.send('play', sound_id)
    return jsonify({'ok': True, 'command': command.to_dict()})


@playback_bp.route('/api/playback/trigger', methods=['POST'])
@require_role(ROLE_ADMIN)
def automatic_trigger():
    """
    A schedule reached its time. If the trigger decision allows it, records
    last_played and only then hands the play command to the host.
    """
    data = get_payload()
    schedule_id = str_field(data, 'scheduleId', True, 'schedule_id', 'id')
    manifest, _ = _catalog.snapshot()
    schedule = manifest.find_schedule(schedule_id)
    if schedule is None:
        raise NotFoundError("schedule not found", {"id": schedule_id})

    timeline, _ = _timeline.get()
    decision = playback_scope.auto_trigger_decision(timeline, schedule)
    if not decision.allowed:
        logger.info(f"⏸️ Schedule {schedule_id} blocked: {decision.reason}")
        return jsonify({'ok': True, 'triggered': False, 'reason': decision.reason})

    # a failed manifest write must not leave a play command behind
    _catalog.mark_played(schedule_id)
    command = _remote.send('play', schedule.sound_id)
    logger.info(f"⏰ Triggered schedule {schedule_id} ({schedule.sound_id} @ {schedule.time})")
    return jsonify({'ok': True, 'triggered': True, 'reason': decision.reason,
                    'command': command.to_dict()})
