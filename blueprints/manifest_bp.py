"""
CUEBOARD Core - Manifest Blueprint
Routes: /api/manifest, /api/sounds/*, /api/schedules/*, /api/categories/*
Dependencies: catalog (SoundCatalog)

Every write goes through a CAS write on manifest.json. Clients that send the
version they read get a 409 on a stale write; clients that don't get bounded
server-side retries.
"""

from flask import Blueprint, jsonify

from api_support import (
    ROLE_ADMIN,
    bool_field,
    get_payload,
    json_field,
    require_role,
    str_field,
    version_field,
)

manifest_bp = Blueprint('manifest', __name__)

_catalog = None


def init_app(catalog):
    """Initialize blueprint with required dependencies."""
    global _catalog
    _catalog = catalog


def _sound_dict(sound):
    data = sound.to_dict()
    data['kind'] = sound.kind
    return data


def _pick(data, keys):
    return {k: data[k] for k in keys if k in data}


# ─────────────────────────────────────────────────────────
# Manifest
# ─────────────────────────────────────────────────────────

@manifest_bp.route('/api/manifest', methods=['GET'])
@require_role()
def get_manifest():
    """Full manifest with version. Sounds in manual sort order."""
    doc, version = _catalog.snapshot()
    return jsonify({
        'version': version,
        'sounds': [_sound_dict(s) for s in doc.sorted_sounds()],
        'schedules': [s.to_dict() for s in doc.schedules],
        'categories': [c.to_dict() for c in sorted(doc.categories, key=lambda c: c.display_order)],
    })


@manifest_bp.route('/api/manifest/normalize-urls', methods=['POST'])
@require_role(ROLE_ADMIN)
def normalize_urls():
    data = get_payload()
    sounds, version = _catalog.normalize_urls(version_field(data))
    return jsonify({'ok': True, 'version': version, 'sounds': [_sound_dict(s) for s in sounds]})


# ─────────────────────────────────────────────────────────
# Sounds
# ─────────────────────────────────────────────────────────

@manifest_bp.route('/api/sounds/insert', methods=['POST'])
@require_role(ROLE_ADMIN)
def insert_sound():
    data = get_payload()
    fields = _pick(data, ('name', 'url', 'file_path', 'size', 'type', 'mime_type',
                          'duration', 'display_order', 'category_id'))
    fields['is_favorite'] = bool_field(data, 'is_favorite')
    sound, version = _catalog.insert_sound(fields, version_field(data))
    return jsonify({'ok': True, 'version': version, 'sound': _sound_dict(sound)})


@manifest_bp.route('/api/sounds/update', methods=['POST'])
@require_role(ROLE_ADMIN)
def update_sound():
    data = get_payload()
    changes = _pick(data, ('name', 'url', 'category_id', 'display_order'))
    if 'is_favorite' in data:
        changes['is_favorite'] = bool_field(data, 'is_favorite')
    sound, version = _catalog.update_sound(str_field(data, 'id'), changes, version_field(data))
    return jsonify({'ok': True, 'version': version, 'sound': _sound_dict(sound)})


@manifest_bp.route('/api/sounds/delete', methods=['POST'])
@require_role(ROLE_ADMIN)
def delete_sound():
    """Delete a sound; its schedules go with it."""
    data = get_payload()
    version = _catalog.delete_sound(str_field(data, 'id'), version_field(data))
    return jsonify({'ok': True, 'version': version})


@manifest_bp.route('/api/sounds/reorder', methods=['POST'])
@require_role(ROLE_ADMIN)
def reorder_sounds():
    """
    Body: {orders: [{id, display_order}, ...]} or {ids: [...]} where the
    display order becomes the list index.
    """
    data = get_payload()
    orders = json_field(data, 'orders')
    if orders is None:
        ids = json_field(data, 'ids') or []
        orders = [{'id': sound_id, 'display_order': index} for index, sound_id in enumerate(ids)] \
            if isinstance(ids, list) else ids
    version = _catalog.reorder(orders, version_field(data))
    return jsonify({'ok': True, 'version': version})


@manifest_bp.route('/api/sounds/favorite', methods=['POST'])
@require_role(ROLE_ADMIN)
def toggle_favorite():
    data = get_payload()
    sound, category, version = _catalog.toggle_favorite(str_field(data, 'id'), version_field(data))
    result = {'ok': True, 'version': version, 'sound': _sound_dict(sound)}
    if category is not None:
        result['category'] = category.to_dict()
    return jsonify(result)


@manifest_bp.route('/api/sounds/hidden', methods=['POST'])
@require_role(ROLE_ADMIN)
def toggle_hidden():
    data = get_payload()
    sound, category, version = _catalog.toggle_hidden(str_field(data, 'id'), version_field(data))
    return jsonify({'ok': True, 'version': version, 'sound': _sound_dict(sound),
                    'category': category.to_dict()})


# ─────────────────────────────────────────────────────────
# Schedules
# ─────────────────────────────────────────────────────────

@manifest_bp.route('/api/schedules/insert', methods=['POST'])
@require_role(ROLE_ADMIN)
def insert_schedule():
    data = get_payload()
    schedule, version = _catalog.insert_schedule(
        str_field(data, 'sound_id', True, 'soundId'),
        str_field(data, 'time'),
        bool_field(data, 'active', True),
        version_field(data),
    )
    return jsonify({'ok': True, 'version': version, 'schedule': schedule.to_dict()})


@manifest_bp.route('/api/schedules/update', methods=['POST'])
@require_role(ROLE_ADMIN)
def update_schedule():
    data = get_payload()
    changes = _pick(data, ('time', 'last_played'))
    if 'active' in data:
        changes['active'] = bool_field(data, 'active')
    schedule, version = _catalog.update_schedule(str_field(data, 'id'), changes, version_field(data))
    return jsonify({'ok': True, 'version': version, 'schedule': schedule.to_dict()})


@manifest_bp.route('/api/schedules/delete', methods=['POST'])
@require_role(ROLE_ADMIN)
def delete_schedule():
    data = get_payload()
    version = _catalog.delete_schedule(str_field(data, 'id'), version_field(data))
    return jsonify({'ok': True, 'version': version})


# ─────────────────────────────────────────────────────────
# Categories
# ─────────────────────────────────────────────────────────

@manifest_bp.route('/api/categories/insert', methods=['POST'])
@require_role(ROLE_ADMIN)
def insert_category():
    data = get_payload()
    category, version = _catalog.insert_category(str_field(data, 'name'), version_field(data))
    return jsonify({'ok': True, 'version': version, 'category': category.to_dict()})


@manifest_bp.route('/api/categories/update', methods=['POST'])
@require_role(ROLE_ADMIN)
def update_category():
    data = get_payload()
    changes = _pick(data, ('name', 'display_order'))
    category, version = _catalog.update_category(str_field(data, 'id'), changes, version_field(data))
    return jsonify({'ok': True, 'version': version, 'category': category.to_dict()})


@manifest_bp.route('/api/categories/delete', methods=['POST'])
@require_role(ROLE_ADMIN)
def delete_category():
    """Delete a category; its sounds become uncategorized."""
    data = get_payload()
    version = _catalog.delete_category(str_field(data, 'id'), version_field(data))
    return jsonify({'ok': True, 'version': version})
