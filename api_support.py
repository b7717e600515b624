"""
CUEBOARD API Support - request parsing and role guard shared by blueprints

Clients send either JSON bodies or form posts (the remote page posts plain
forms). Structured fields such as segments or soundsBySegment arrive as JSON
strings in the form case and are decoded here, so blueprints only ever see
Python values.
"""

import json
from functools import wraps

from flask import current_app, request, session

from core.soundboard.errors import AuthError, ValidationError

ROLE_ADMIN = 'admin'
ROLE_REMOTE = 'remote'
ROLES = (ROLE_ADMIN, ROLE_REMOTE)


def get_payload() -> dict:
    """JSON body, or form fields merged with query args."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    if data is not None:
        raise ValidationError("request body must be an object")
    payload = request.args.to_dict()
    payload.update(request.form.to_dict())
    return payload


def json_field(payload: dict, key: str, default=None):
    """Field that may be a JSON-encoded string (form posts) or already decoded."""
    value = payload.get(key, default)
    if isinstance(value, str):
        text = value.strip()
        if text[:1] in ('[', '{') or text in ('null', 'true', 'false'):
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise ValidationError(f"{key} is not valid JSON", {"reason": str(e)})
    return value


def str_field(payload: dict, key: str, required: bool = True, *aliases) -> str:
    for name in (key,) + aliases:
        value = payload.get(name)
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    if required:
        raise ValidationError(f"{key} is required")
    return ""


def bool_field(payload: dict, key: str, default: bool = False) -> bool:
    value = payload.get(key, default)
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def version_field(payload: dict):
    """Optional client-read version for a CAS write; None when absent."""
    value = payload.get('version')
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("version must be an integer", {"version": value})


def current_role():
    if current_app.config.get('CUEBOARD_AUTH_DISABLED'):
        return ROLE_ADMIN
    role = session.get('role')
    return role if role in ROLES else None


def require_role(*roles):
    """
    Guard a view. With no roles any signed-in role passes.

    Usage:
        @manifest_bp.route('/api/sounds/delete', methods=['POST'])
        @require_role('admin')
        def delete_sound(): ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            role = current_role()
            if role is None:
                raise AuthError("login required")
            if roles and role not in roles:
                raise AuthError("insufficient role", {"required": list(roles), "role": role})
            return func(*args, **kwargs)
        return wrapper
    return decorator
