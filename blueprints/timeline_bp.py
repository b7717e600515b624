"""
CUEBOARD Core - Timeline Blueprint
Routes: /api/timeline, /api/timeline/save
Dependencies: timeline (TimelineState)
"""

from flask import Blueprint, jsonify

from api_support import ROLE_ADMIN, get_payload, json_field, require_role, version_field
from core.soundboard.errors import ValidationError
from core.soundboard.types import parse_segments, parse_sounds_by_segment

timeline_bp = Blueprint('timeline', __name__)

_timeline = None


def init_app(timeline):
    """Initialize blueprint with required dependencies."""
    global _timeline
    _timeline = timeline


def _id_list(data, key):
    value = json_field(data, key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list")
    return value


@timeline_bp.route('/api/timeline', methods=['GET'])
@require_role()
def get_timeline():
    doc, version = _timeline.get()
    result = doc.to_dict()
    result['version'] = version
    return jsonify(result)


@timeline_bp.route('/api/timeline/save', methods=['POST'])
@require_role(ROLE_ADMIN)
def save_timeline():
    """
    Partial save. Mute lists are always replaced; segments, preset meta and
    soundsBySegment are replaced only when present in the body.
    """
    data = get_payload()

    raw_segments = json_field(data, 'segments')
    segments = parse_segments(raw_segments) if raw_segments is not None else None

    preset_meta = None
    if 'activePresetId' in data or 'activePresetName' in data:
        preset_meta = (data.get('activePresetId') or None, data.get('activePresetName') or None)

    raw_map = json_field(data, 'soundsBySegment')
    sounds_by_segment = parse_sounds_by_segment(raw_map) if raw_map is not None else None

    doc, version = _timeline.save(
        _id_list(data, 'mutedSchedules'),
        _id_list(data, 'mutedSegments'),
        segments=segments,
        preset_meta=preset_meta,
        sounds_by_segment=sounds_by_segment,
        expected_version=version_field(data),
    )
    result = doc.to_dict()
    result.update({'ok': True, 'version': version})
    return jsonify(result)
