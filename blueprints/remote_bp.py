"""
CUEBOARD Core - Remote Control Blueprint
Routes: /api/remote, /api/remote/send
Dependencies: remote (RemoteCommandChannel)
"""

from flask import Blueprint, jsonify

from api_support import get_payload, require_role, str_field

remote_bp = Blueprint('remote', __name__)

_remote = None


def init_app(remote):
    """Initialize blueprint with required dependencies."""
    global _remote
    _remote = remote


@remote_bp.route('/api/remote', methods=['GET'])
@require_role()
def get_remote_command():
    """Last command in the slot, or null. The host compares ts itself."""
    command = _remote.get()
    return jsonify({'ok': True, 'command': command.to_dict() if command else None})


@remote_bp.route('/api/remote/send', methods=['POST'])
@require_role()
def send_remote_command():
    """Body: {action, soundId?}. Replaces whatever command is in the slot."""
    data = get_payload()
    command = _remote.send(str(data.get('action') or ''), str_field(data, 'soundId', False, 'sound_id') or None)
    return jsonify({'ok': True, 'command': command.to_dict()})
