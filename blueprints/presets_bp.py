"""
CUEBOARD Core - Presets Blueprint
Routes: /api/presets, /api/presets/*
Dependencies: presets (PresetRepository), catalog (SoundCatalog)
"""

from flask import Blueprint, jsonify

from api_support import (
    ROLE_ADMIN,
    get_payload,
    json_field,
    require_role,
    str_field,
    version_field,
)
from core.soundboard.types import Preset, parse_segments, parse_sounds_by_segment

presets_bp = Blueprint('presets', __name__)

_presets = None
_catalog = None


def init_app(presets, catalog):
    """Initialize blueprint with required dependencies."""
    global _presets, _catalog
    _presets = presets
    _catalog = catalog


def _ok(preset):
    return jsonify({'ok': True, 'preset': preset.to_dict()})


@presets_bp.route('/api/presets', methods=['GET'])
@require_role()
def list_presets():
    presets, version = _presets.list()
    return jsonify({'version': version, 'presets': [p.to_dict() for p in presets]})


@presets_bp.route('/api/presets/upsert', methods=['POST'])
@require_role(ROLE_ADMIN)
def upsert_preset():
    """
    Body: {id?, name, segments, soundsBySegment?}. Omitting soundsBySegment
    keeps the stored map of an existing preset.
    """
    data = get_payload()
    raw_map = json_field(data, 'soundsBySegment')
    preset = Preset(
        id=str_field(data, 'id', False),
        name=str_field(data, 'name'),
        segments=parse_segments(json_field(data, 'segments', [])),
        sounds_by_segment=parse_sounds_by_segment(raw_map) if raw_map is not None else None,
    )
    return _ok(_presets.upsert(preset, version_field(data)))


@presets_bp.route('/api/presets/delete', methods=['POST'])
@require_role(ROLE_ADMIN)
def delete_preset():
    data = get_payload()
    _presets.delete(str_field(data, 'id'), version_field(data))
    return jsonify({'ok': True})


@presets_bp.route('/api/presets/apply', methods=['POST'])
@require_role(ROLE_ADMIN)
def apply_preset():
    """Copy the preset's segments and map into the timeline and mark it active."""
    data = get_payload()
    timeline, version = _presets.apply(str_field(data, 'id'))
    result = timeline.to_dict()
    result['version'] = version
    return jsonify({'ok': True, 'timeline': result})


@presets_bp.route('/api/presets/duplicate', methods=['POST'])
@require_role(ROLE_ADMIN)
def duplicate_preset():
    data = get_payload()
    return _ok(_presets.duplicate(str_field(data, 'id'), version_field(data)))


@presets_bp.route('/api/presets/rename', methods=['POST'])
@require_role(ROLE_ADMIN)
def rename_preset():
    data = get_payload()
    return _ok(_presets.rename(str_field(data, 'id'), str_field(data, 'name'), version_field(data)))


@presets_bp.route('/api/presets/capture', methods=['POST'])
@require_role(ROLE_ADMIN)
def capture_preset():
    """Save segments (default: the timeline's current ones) as a new preset."""
    data = get_payload()
    raw_segments = json_field(data, 'segments')
    segments = parse_segments(raw_segments) if raw_segments is not None else None
    return _ok(_presets.capture(str_field(data, 'name', False), segments, version_field(data)))


@presets_bp.route('/api/presets/build-mapping', methods=['POST'])
@require_role(ROLE_ADMIN)
def build_preset_mapping():
    """Whitelist every scheduled sound whose time falls in one of the preset's segments."""
    data = get_payload()
    manifest, _ = _catalog.snapshot()
    return _ok(_presets.build_mapping(str_field(data, 'id'), manifest, version_field(data)))


# ─────────────────────────────────────────────────────────
# Entry edits
# ─────────────────────────────────────────────────────────

@presets_bp.route('/api/presets/entries/add', methods=['POST'])
@require_role(ROLE_ADMIN)
def add_preset_entry():
    data = get_payload()
    preset = _presets.add_entry(
        str_field(data, 'id'),
        str_field(data, 'soundId', True, 'sound_id'),
        str_field(data, 'time'),
        version_field(data),
    )
    return _ok(preset)


@presets_bp.route('/api/presets/entries/remove', methods=['POST'])
@require_role(ROLE_ADMIN)
def remove_preset_entry():
    data = get_payload()
    preset = _presets.remove_entry(
        str_field(data, 'id'),
        str_field(data, 'soundId', True, 'sound_id'),
        str_field(data, 'time'),
        version_field(data),
    )
    return _ok(preset)


@presets_bp.route('/api/presets/entries/move', methods=['POST'])
@require_role(ROLE_ADMIN)
def move_preset_entry():
    data = get_payload()
    preset = _presets.move_entry(
        str_field(data, 'id'),
        str_field(data, 'soundId', True, 'sound_id'),
        str_field(data, 'oldTime'),
        str_field(data, 'newTime'),
        version_field(data),
    )
    return _ok(preset)
