"""
CUEBOARD Soundboard Module - versioned documents and cue scoping

All durable state of the sound-cue tool lives in small JSON documents
(manifest, timeline, presets, remote command). This package holds the
document store with optimistic concurrency and the repositories built on it.

Key Components:
- VersionedDocumentStore: read / CAS write / atomic persist of one document
- SoundCatalog: sounds, schedules and categories (manifest.json)
- PresetRepository: named timeline shapes with sound whitelists (presets.json)
- TimelineState: active segments, restriction map, mute overlay (timeline.json)
- build_mapping: which scheduled sounds fall inside which segment
- playback_scope: automatic-trigger vs manual-play gating
- RemoteCommandChannel / RemoteCommandPoller: remote -> host command slot

Usage:
    from core.soundboard import VersionedDocumentStore, ManifestDocument, SoundCatalog

    store = VersionedDocumentStore('/data/manifest.json', ManifestDocument, name='manifest')
    catalog = SoundCatalog(store)
    manifest, version = catalog.snapshot()
    sound, version = catalog.update_sound(sound_id, {'name': 'Fanfare'}, expected_version=version)

Version: 0.1.0
"""

from .errors import (
    CueboardError,
    ValidationError,
    NotFoundError,
    AuthError,
    ConflictError,
    PersistenceError,
)

from .types import (
    Sound,
    Schedule,
    Category,
    ManifestDocument,
    TimelineSegment,
    SegmentEntry,
    SegmentRestriction,
    Preset,
    PresetsDocument,
    TimelineDocument,
    RemoteCommand,
    restriction_for,
    parse_segments,
    parse_sounds_by_segment,
)

from .time_range import TimeRange, contains, normalize_time, parse_time
from .document_store import VersionedDocumentStore, atomic_write_json, load_json
from .segment_mapper import build_mapping, catalog_entries
from .sound_catalog import SoundCatalog
from .timeline_state import TimelineState
from .presets import PresetRepository
from .playback_scope import (
    ScopeDecision,
    is_in_scope,
    auto_trigger_decision,
    manual_play_allowed,
    due_schedules,
)
from .remote_command import RemoteCommandChannel, RemoteCommandPoller

__all__ = [
    # Errors
    'CueboardError', 'ValidationError', 'NotFoundError', 'AuthError',
    'ConflictError', 'PersistenceError',
    # Types
    'Sound', 'Schedule', 'Category', 'ManifestDocument', 'TimelineSegment',
    'SegmentEntry', 'SegmentRestriction', 'Preset', 'PresetsDocument',
    'TimelineDocument', 'RemoteCommand', 'restriction_for', 'parse_segments',
    'parse_sounds_by_segment',
    # Time
    'TimeRange', 'contains', 'normalize_time', 'parse_time',
    # Store
    'VersionedDocumentStore', 'atomic_write_json', 'load_json',
    # Repositories
    'SoundCatalog', 'TimelineState', 'PresetRepository',
    # Mapping / scope
    'build_mapping', 'catalog_entries', 'ScopeDecision', 'is_in_scope',
    'auto_trigger_decision', 'manual_play_allowed', 'due_schedules',
    # Remote
    'RemoteCommandChannel', 'RemoteCommandPoller',
]

__version__ = '0.1.0'
