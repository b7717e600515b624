#!/usr/bin/env python3
"""
CUEBOARD Core - Sound-cue backend for live events

One host console uploads, schedules and plays audio cues; remote clients
trigger playback on the host. All durable state is four JSON documents in the
data directory:

    manifest.json   sounds, schedules, categories        (CAS on every write)
    timeline.json   segments, active preset, mute overlay (last-write-wins)
    presets.json    named segment layouts + whitelists    (last-write-wins)
    remote.json     last remote command                   (single slot)

Run:
    python cueboard_core.py

Configuration via environment (see load_config), or create_app(overrides)
from tests.
"""

import json
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException

import core_registry as reg
from blueprints.auth_bp import auth_bp, init_app as auth_init
from blueprints.manifest_bp import manifest_bp, init_app as manifest_init
from blueprints.playback_bp import playback_bp, init_app as playback_init
from blueprints.presets_bp import presets_bp, init_app as presets_init
from blueprints.remote_bp import remote_bp, init_app as remote_init
from blueprints.timeline_bp import timeline_bp, init_app as timeline_init
from core.soundboard import (
    CueboardError,
    ManifestDocument,
    PresetRepository,
    PresetsDocument,
    RemoteCommandChannel,
    SoundCatalog,
    TimelineDocument,
    TimelineState,
    VersionedDocumentStore,
)
from core.soundboard import __version__ as CUEBOARD_VERSION

logger = logging.getLogger('cueboard')

# ============================================================
# Configuration - Environment-based with sensible defaults
# ============================================================

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:8892",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8892",
]


def _env_flag(name, default='0'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes')


def get_allowed_origins(extra=''):
    """Default origins plus comma-separated CUEBOARD_CORS_ORIGINS."""
    origins = DEFAULT_CORS_ORIGINS.copy()
    for origin in (extra or '').split(','):
        origin = origin.strip()
        if origin and origin not in origins:
            origins.append(origin)
    return origins


def load_config(overrides=None):
    config = {
        'CUEBOARD_DATA_DIR': os.environ.get(
            'CUEBOARD_DATA_DIR', os.path.join(os.path.expanduser("~"), "cueboard-data")),
        'CUEBOARD_API_PORT': int(os.environ.get('CUEBOARD_API_PORT', 8892)),
        'CUEBOARD_ADMIN_USERNAME': os.environ.get('CUEBOARD_ADMIN_USERNAME', ''),
        'CUEBOARD_ADMIN_PASSWORD_HASH': os.environ.get('CUEBOARD_ADMIN_PASSWORD_HASH', ''),
        'CUEBOARD_SECRET_KEY': os.environ.get('CUEBOARD_SECRET_KEY', ''),
        'CUEBOARD_CORS_ORIGINS': os.environ.get('CUEBOARD_CORS_ORIGINS', ''),
        'CUEBOARD_PUBLIC_BASE_URL': os.environ.get('CUEBOARD_PUBLIC_BASE_URL', ''),
        'CUEBOARD_CAS_RETRIES': int(os.environ.get('CUEBOARD_CAS_RETRIES', 3)),
        'CUEBOARD_AUTH_DISABLED': _env_flag('CUEBOARD_AUTH_DISABLED'),
        'CUEBOARD_LOGIN_DELAY_MS': int(os.environ.get('CUEBOARD_LOGIN_DELAY_MS', 300)),
    }
    config.update(overrides or {})
    return config


# ============================================================
# Audit log - compact JSON lines with rotation
# ============================================================

_audit_logger = logging.getLogger('cueboard.audit')
_audit_logger.setLevel(logging.INFO)
_audit_logger.propagate = False  # Don't spam console


def setup_audit_log(data_dir):
    """Point the audit logger at <data_dir>/logs/audit.log (5 MB x 5)."""
    log_dir = os.path.join(data_dir, 'logs')
    os.makedirs(log_dir, exist_ok=True)
    for handler in list(_audit_logger.handlers):
        _audit_logger.removeHandler(handler)
        handler.close()
    handler = RotatingFileHandler(
        os.path.join(log_dir, 'audit.log'),
        maxBytes=5 * 1024 * 1024,  # 5 MB per file
        backupCount=5,
        encoding='utf-8'
    )
    handler.setFormatter(logging.Formatter('%(asctime)s %(message)s', datefmt='%Y-%m-%dT%H:%M:%S'))
    _audit_logger.addHandler(handler)


def audit_log(event_type, **kwargs):
    """Write a structured audit log entry."""
    entry = json.dumps({'event': event_type, **kwargs}, separators=(',', ':'), default=str)
    _audit_logger.info(entry)


# ============================================================
# Error handlers
# ============================================================

def register_error_handlers(app):

    @app.errorhandler(CueboardError)
    def handle_cueboard_error(e):
        if e.status_code >= 500:
            logger.error(f"❌ {type(e).__name__}: {e.message} {e.details}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({'error': 'method not allowed'}), 405

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'error': 'not found'}), 404

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        logger.exception(f"❌ Unhandled error: {e}")
        return jsonify({'error': 'server error'}), 500


# ============================================================
# App factory
# ============================================================

def create_app(overrides=None):
    config = load_config(overrides)
    data_dir = config['CUEBOARD_DATA_DIR']
    os.makedirs(data_dir, exist_ok=True)

    app = Flask(__name__)
    app.config.update(config)
    app.secret_key = config['CUEBOARD_SECRET_KEY'] or os.urandom(32).hex()
    if not config['CUEBOARD_SECRET_KEY']:
        logger.warning("⚠️ CUEBOARD_SECRET_KEY not set, sessions will not survive a restart")

    allowed_origins = get_allowed_origins(config['CUEBOARD_CORS_ORIGINS'])
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}}, supports_credentials=True)
    socketio = SocketIO(app, cors_allowed_origins=allowed_origins, async_mode='threading')

    setup_audit_log(data_dir)

    # ── Populate core_registry ──
    reg.socketio = socketio
    reg.audit_log = audit_log
    reg.CUEBOARD_API_PORT = config['CUEBOARD_API_PORT']
    reg.DATA_DIR = data_dir
    reg.MANIFEST_FILE = os.path.join(data_dir, 'manifest.json')
    reg.TIMELINE_FILE = os.path.join(data_dir, 'timeline.json')
    reg.PRESETS_FILE = os.path.join(data_dir, 'presets.json')
    reg.REMOTE_FILE = os.path.join(data_dir, 'remote.json')

    retries = config['CUEBOARD_CAS_RETRIES']
    reg.catalog = SoundCatalog(
        VersionedDocumentStore(reg.MANIFEST_FILE, ManifestDocument, 'manifest', retries),
        config['CUEBOARD_PUBLIC_BASE_URL'],
    )
    reg.timeline = TimelineState(
        VersionedDocumentStore(reg.TIMELINE_FILE, TimelineDocument, 'timeline', retries))
    reg.presets = PresetRepository(
        VersionedDocumentStore(reg.PRESETS_FILE, PresetsDocument, 'presets', retries), reg.timeline)
    reg.remote = RemoteCommandChannel(reg.REMOTE_FILE)

    # Wire dependencies into blueprints
    auth_init(config['CUEBOARD_ADMIN_USERNAME'], config['CUEBOARD_ADMIN_PASSWORD_HASH'],
              config['CUEBOARD_LOGIN_DELAY_MS'], audit_log)
    manifest_init(reg.catalog)
    presets_init(reg.presets, reg.catalog)
    timeline_init(reg.timeline)
    remote_init(reg.remote)
    playback_init(reg.catalog, reg.timeline, reg.remote)

    app.register_blueprint(auth_bp)
    app.register_blueprint(manifest_bp)
    app.register_blueprint(presets_bp)
    app.register_blueprint(timeline_bp)
    app.register_blueprint(remote_bp)
    app.register_blueprint(playback_bp)

    register_error_handlers(app)

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({
            'status': 'healthy',
            'version': CUEBOARD_VERSION,
            'data_dir': data_dir,
            'documents': {
                'manifest': reg.catalog.store.current_version(),
                'timeline': reg.timeline.store.current_version(),
                'presets': reg.presets.store.current_version(),
            },
            'timestamp': datetime.now().isoformat(),
        })

    logger.info(f"🔒 CORS allowed origins: {allowed_origins}")
    logger.info(f"📂 Data directory: {data_dir}")
    return app


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app = create_app()
    port = app.config['CUEBOARD_API_PORT']
    print(f"🎵 CUEBOARD Core {CUEBOARD_VERSION} starting on port {port}", flush=True)
    reg.socketio.run(app, host='0.0.0.0', port=port, debug=False, allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
