"""
CUEBOARD Core - Auth Blueprint
Routes: /api/login, /api/logout, /api/me
Dependencies: admin_username, admin_password_hash, login_delay_ms, audit_log
"""

import logging
import time

from flask import Blueprint, jsonify, session
from werkzeug.security import check_password_hash

from api_support import ROLE_ADMIN, ROLE_REMOTE, current_role, get_payload
from core.soundboard.errors import AuthError

auth_bp = Blueprint('auth', __name__)

logger = logging.getLogger('cueboard.auth')

_admin_username = ''
_admin_password_hash = ''
_login_delay_ms = 300
_audit_log = None


def init_app(admin_username, admin_password_hash, login_delay_ms, audit_log):
    """Initialize blueprint with required dependencies."""
    global _admin_username, _admin_password_hash, _login_delay_ms, _audit_log
    _admin_username = admin_username or ''
    _admin_password_hash = admin_password_hash or ''
    _login_delay_ms = login_delay_ms
    _audit_log = audit_log


def _role_for(username: str):
    """Admin username (any case) -> admin; 'remote' -> remote; else None."""
    name = username.strip().lower()
    if _admin_username and name == _admin_username.lower():
        return ROLE_ADMIN
    if name == ROLE_REMOTE:
        return ROLE_REMOTE
    return None


@auth_bp.route('/api/login', methods=['POST'])
def login():
    """
    Sign in. The remote role shares the admin password so that a phone at the
    side of the stage can trigger sounds without edit rights.
    """
    data = get_payload()
    username = str(data.get('username') or '')
    password = str(data.get('password') or '')

    role = _role_for(username)
    if role is None or not _admin_password_hash or not check_password_hash(_admin_password_hash, password):
        # slow down brute force
        time.sleep(_login_delay_ms / 1000.0)
        logger.warning(f"🔐 Failed login for '{username}'")
        if _audit_log:
            _audit_log('login_failed', username=username)
        raise AuthError("Unauthorized")

    session.clear()
    session['role'] = role
    logger.info(f"🔐 Login as {role}")
    if _audit_log:
        _audit_log('login', role=role)
    return jsonify({'ok': True, 'role': role})


@auth_bp.route('/api/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'ok': True})


@auth_bp.route('/api/me', methods=['GET'])
def me():
    role = current_role()
    return jsonify({'authenticated': role is not None, 'role': role})
