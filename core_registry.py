"""
CUEBOARD Core Registry - Shared Instance Registry

Modules import from here to reach cross-cutting services without circular
imports. cueboard_core.create_app() populates these during startup; every
attribute is None until then, and code that uses one checks it first, so the
soundboard core runs unchanged in tests without an app.
"""

# ── Infrastructure ──
socketio = None           # Flask-SocketIO instance (change notifications)

# ── Utilities ──
audit_log = None          # Function for persistent audit logging

# ── Repositories ──
catalog = None            # SoundCatalog (manifest document)
timeline = None           # TimelineState (timeline document)
presets = None            # PresetRepository (presets document)
remote = None             # RemoteCommandChannel (remote command slot)

# ── Constants (set during startup) ──
CUEBOARD_API_PORT = 8892
DATA_DIR = None           # Directory holding the JSON documents
MANIFEST_FILE = None      # Path to manifest.json
TIMELINE_FILE = None      # Path to timeline.json
PRESETS_FILE = None       # Path to presets.json
REMOTE_FILE = None        # Path to remote.json
