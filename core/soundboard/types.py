"""
Soundboard Type Definitions - Dataclasses for persisted documents

Pure data containers. Every class round-trips through to_dict()/from_dict();
from_dict() is tolerant (missing or mistyped fields fall back to defaults) so a
damaged document degrades to defaults instead of propagating None downstream.
Request payloads go through the parse_* helpers instead, which reject bad input.

Classes:
    Sound, Schedule, Category: Catalog entities (manifest document)
    ManifestDocument: sounds + schedules + categories
    TimelineSegment: Named inclusive time-of-day interval
    SegmentEntry: One (soundId, time) whitelist entry
    SegmentRestriction: Unrestricted | RestrictedTo(entries)
    Preset, PresetsDocument: Named timeline snapshots
    TimelineDocument: Current timeline state
    RemoteCommand: Last remote command

On-disk key names follow the wire format the web client speaks: snake_case for
manifest entities, camelCase for timeline and preset documents.
"""

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .time_range import is_valid_time, normalize_time, parse_time


# ============================================================
# Constants
# ============================================================

SUPPORTED_AUDIO_TYPES = (
    "audio/mpeg",    # .mp3
    "audio/wav",     # .wav
    "audio/x-wav",
    "audio/ogg",     # .ogg
    "audio/mp4",     # .m4a
    "audio/x-m4a",   # .m4a (alternative MIME type)
)
NOTIFICATION_TYPES = ("audio/wav", "audio/x-wav")

FAVORITES_CATEGORY = "Favoriten"
HIDDEN_CATEGORY = "Ausgeblendet"
RESERVED_CATEGORIES = (FAVORITES_CATEGORY, HIDDEN_CATEGORY)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _str_or_none(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _dicts(value) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


# ============================================================
# Manifest Entities
# ============================================================

@dataclass
class Sound:
    """An uploaded audio cue. The file itself lives outside the manifest."""
    id: str
    name: str
    url: str = ""
    file_path: str = ""
    size: int = 0
    mime_type: str = "audio/mpeg"
    duration: float = 0.0
    display_order: int = 0
    is_favorite: bool = False
    category_id: Optional[str] = None

    @property
    def kind(self) -> str:
        return "notification" if self.mime_type in NOTIFICATION_TYPES else "music"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "file_path": self.file_path,
            "size": self.size,
            "type": self.mime_type,
            "duration": self.duration,
            "display_order": self.display_order,
            "is_favorite": self.is_favorite,
            "category_id": self.category_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Sound":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            url=str(data.get("url") or ""),
            file_path=str(data.get("file_path") or ""),
            size=_int(data.get("size")),
            mime_type=str(data.get("type") or "audio/mpeg"),
            duration=_float(data.get("duration")),
            display_order=_int(data.get("display_order")),
            is_favorite=bool(data.get("is_favorite", False)),
            category_id=_str_or_none(data.get("category_id")),
        )


@dataclass
class Schedule:
    """A time of day at which a sound should fire automatically."""
    id: str
    sound_id: str
    time: str
    active: bool = True
    last_played: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sound_id": self.sound_id,
            "time": self.time,
            "active": self.active,
            "last_played": self.last_played,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Schedule":
        raw_time = str(data.get("time") or "00:00:00")
        return cls(
            id=str(data.get("id", "")),
            sound_id=str(data.get("sound_id", "")),
            time=normalize_time(raw_time),
            active=bool(data.get("active", True)),
            last_played=_str_or_none(data.get("last_played")),
        )


@dataclass
class Category:
    id: str
    name: str
    display_order: int = 0

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "display_order": self.display_order}

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            display_order=_int(data.get("display_order")),
        )


@dataclass
class ManifestDocument:
    """The sound catalog: sounds, their schedules and categories."""
    sounds: List[Sound] = field(default_factory=list)
    schedules: List[Schedule] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)

    @classmethod
    def default(cls) -> "ManifestDocument":
        return cls()

    def to_dict(self) -> dict:
        return {
            "sounds": [s.to_dict() for s in self.sounds],
            "schedules": [s.to_dict() for s in self.schedules],
            "categories": [c.to_dict() for c in self.categories],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestDocument":
        return cls(
            sounds=[Sound.from_dict(s) for s in _dicts(data.get("sounds"))],
            schedules=[Schedule.from_dict(s) for s in _dicts(data.get("schedules"))],
            categories=[Category.from_dict(c) for c in _dicts(data.get("categories"))],
        )

    # ---- Lookups ----

    def find_sound(self, sound_id: str) -> Optional[Sound]:
        for sound in self.sounds:
            if sound.id == sound_id:
                return sound
        return None

    def find_schedule(self, schedule_id: str) -> Optional[Schedule]:
        for schedule in self.schedules:
            if schedule.id == schedule_id:
                return schedule
        return None

    def find_category(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def find_category_by_name(self, name: str) -> Optional[Category]:
        wanted = name.strip().lower()
        for category in self.categories:
            if category.name.strip().lower() == wanted:
                return category
        return None

    def schedules_for(self, sound_id: str) -> List[Schedule]:
        return [s for s in self.schedules if s.sound_id == sound_id]

    def sorted_sounds(self) -> List[Sound]:
        return sorted(self.sounds, key=lambda s: s.display_order)


# ============================================================
# Timeline Entities
# ============================================================

@dataclass
class TimelineSegment:
    """A named, inclusive time-of-day interval."""
    id: str
    title: str
    start_time: str
    end_time: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimelineSegment":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            start_time=normalize_time(str(data.get("startTime") or "00:00:00")),
            end_time=normalize_time(str(data.get("endTime") or "23:59:59")),
        )


@dataclass(frozen=True)
class SegmentEntry:
    """
    One whitelist entry of a segment restriction.

    time is None for legacy entries stored as a bare sound id; those match the
    sound at any time.
    """
    sound_id: str
    time: Optional[str] = None

    def matches(self, sound_id: str, time: str) -> bool:
        if self.sound_id != sound_id:
            return False
        return self.time is None or self.time == normalize_time(time)

    def to_dict(self) -> dict:
        return {"soundId": self.sound_id, "time": self.time}

    @classmethod
    def from_raw(cls, raw) -> Optional["SegmentEntry"]:
        """Accepts "id", {"soundId", "time"} and the older {"id", "time"} shape."""
        if isinstance(raw, str):
            return cls(sound_id=raw) if raw else None
        if not isinstance(raw, dict):
            return None
        sound_id = raw.get("soundId", raw.get("id"))
        if not sound_id:
            return None
        time = raw.get("time")
        if time is not None and not is_valid_time(time):
            return None
        return cls(sound_id=str(sound_id), time=normalize_time(time.strip()) if time else None)


class SegmentRestriction:
    """
    Tagged variant for one segment: Unrestricted or RestrictedTo(entries).

    An empty RestrictedTo hides everything in the segment; Unrestricted shows
    everything. The two must never be confused.
    """

    __slots__ = ("restricted", "entries")

    def __init__(self, restricted: bool, entries=()):
        self.restricted = restricted
        self.entries = tuple(entries)

    @classmethod
    def unrestricted(cls) -> "SegmentRestriction":
        return cls(False)

    @classmethod
    def restricted_to(cls, entries) -> "SegmentRestriction":
        return cls(True, entries)

    def allows(self, sound_id: str, time: str) -> bool:
        if not self.restricted:
            return True
        return any(entry.matches(sound_id, time) for entry in self.entries)

    def __eq__(self, other):
        return (isinstance(other, SegmentRestriction)
                and self.restricted == other.restricted
                and self.entries == other.entries)

    def __repr__(self):
        if not self.restricted:
            return "Unrestricted"
        return f"RestrictedTo({list(self.entries)!r})"


SoundsBySegment = Dict[str, List[SegmentEntry]]


def restriction_for(sounds_by_segment: Optional[SoundsBySegment], segment_id: str) -> SegmentRestriction:
    """Key absent -> Unrestricted; key present (even empty) -> RestrictedTo."""
    if not sounds_by_segment or segment_id not in sounds_by_segment:
        return SegmentRestriction.unrestricted()
    return SegmentRestriction.restricted_to(sounds_by_segment[segment_id])


def sounds_by_segment_from_raw(raw) -> SoundsBySegment:
    """Tolerant load of a soundsBySegment map; unusable entries are dropped."""
    if not isinstance(raw, dict):
        return {}
    result: SoundsBySegment = {}
    for segment_id, entries in raw.items():
        if not isinstance(entries, list):
            continue
        parsed = [SegmentEntry.from_raw(e) for e in entries]
        result[str(segment_id)] = [e for e in parsed if e is not None]
    return result


def sounds_by_segment_to_dict(mapping: Optional[SoundsBySegment]) -> Dict[str, List[dict]]:
    if not mapping:
        return {}
    return {seg_id: [e.to_dict() for e in entries] for seg_id, entries in mapping.items()}


def copy_sounds_by_segment(mapping: Optional[SoundsBySegment]) -> Optional[SoundsBySegment]:
    if mapping is None:
        return None
    return {seg_id: list(entries) for seg_id, entries in mapping.items()}


# ============================================================
# Presets
# ============================================================

@dataclass
class Preset:
    """
    A frozen, named snapshot of a timeline shape plus an explicit whitelist.

    sounds_by_segment is None when the preset carries no mapping at all.
    """
    id: str
    name: str
    segments: List[TimelineSegment] = field(default_factory=list)
    sounds_by_segment: Optional[SoundsBySegment] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "segments": [s.to_dict() for s in self.segments],
        }
        if self.sounds_by_segment is not None:
            data["soundsBySegment"] = sounds_by_segment_to_dict(self.sounds_by_segment)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Preset":
        raw_map = data.get("soundsBySegment")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            segments=[TimelineSegment.from_dict(s) for s in _dicts(data.get("segments"))],
            sounds_by_segment=sounds_by_segment_from_raw(raw_map) if isinstance(raw_map, dict) else None,
        )

    def copy(self) -> "Preset":
        """Value copy; nested containers are never shared with the original."""
        return copy.deepcopy(self)


@dataclass
class PresetsDocument:
    presets: List[Preset] = field(default_factory=list)

    @classmethod
    def default(cls) -> "PresetsDocument":
        return cls()

    def to_dict(self) -> dict:
        return {"presets": [p.to_dict() for p in self.presets]}

    @classmethod
    def from_dict(cls, data: dict) -> "PresetsDocument":
        return cls(presets=[Preset.from_dict(p) for p in _dicts(data.get("presets"))])

    def find(self, preset_id: str) -> Optional[Preset]:
        for preset in self.presets:
            if preset.id == preset_id:
                return preset
        return None


# ============================================================
# Timeline State
# ============================================================

def _unique_strings(values) -> List[str]:
    if not isinstance(values, list):
        return []
    return list(dict.fromkeys(str(v) for v in values if v is not None))


@dataclass
class TimelineDocument:
    """
    Current timeline: segments, active preset, restriction map, mute overlay.

    An empty sounds_by_segment means no restriction is active.
    """
    segments: List[TimelineSegment] = field(default_factory=list)
    active_preset_id: Optional[str] = None
    active_preset_name: Optional[str] = None
    sounds_by_segment: SoundsBySegment = field(default_factory=dict)
    muted_schedule_ids: List[str] = field(default_factory=list)
    muted_segment_ids: List[str] = field(default_factory=list)

    @classmethod
    def default(cls) -> "TimelineDocument":
        return cls()

    def to_dict(self) -> dict:
        return {
            "mutedSchedules": list(self.muted_schedule_ids),
            "mutedSegments": list(self.muted_segment_ids),
            "segments": [s.to_dict() for s in self.segments],
            "activePresetId": self.active_preset_id,
            "activePresetName": self.active_preset_name,
            "soundsBySegment": sounds_by_segment_to_dict(self.sounds_by_segment),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimelineDocument":
        return cls(
            segments=[TimelineSegment.from_dict(s) for s in _dicts(data.get("segments"))],
            active_preset_id=_str_or_none(data.get("activePresetId")),
            active_preset_name=_str_or_none(data.get("activePresetName")),
            sounds_by_segment=sounds_by_segment_from_raw(data.get("soundsBySegment")),
            muted_schedule_ids=_unique_strings(data.get("mutedSchedules")),
            muted_segment_ids=_unique_strings(data.get("mutedSegments")),
        )

    def segments_containing(self, time: str) -> List[TimelineSegment]:
        t = normalize_time(time)
        return [s for s in self.segments if s.start_time <= t <= s.end_time]

    def segment_containing(self, time: str) -> Optional[TimelineSegment]:
        matches = self.segments_containing(time)
        return matches[0] if matches else None

    @property
    def is_restricted(self) -> bool:
        return bool(self.sounds_by_segment)


# ============================================================
# Remote Command
# ============================================================

@dataclass
class RemoteCommand:
    action: str
    sound_id: Optional[str] = None
    ts: int = 0

    def to_dict(self) -> dict:
        return {"action": self.action, "soundId": self.sound_id, "ts": self.ts}

    @classmethod
    def from_dict(cls, data: dict) -> Optional["RemoteCommand"]:
        if not isinstance(data, dict) or not data.get("action"):
            return None
        return cls(
            action=str(data["action"]),
            sound_id=_str_or_none(data.get("soundId")),
            ts=_int(data.get("ts")),
        )


# ============================================================
# Request Parsing (strict)
# ============================================================

def parse_segments(raw) -> List[TimelineSegment]:
    """Validate a segments payload. Raises ValidationError."""
    if not isinstance(raw, list):
        raise ValidationError("segments must be a list")
    segments = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("id"):
            raise ValidationError("segment requires an id", {"index": index})
        start = parse_time(item.get("startTime"))
        end = parse_time(item.get("endTime"))
        segments.append(TimelineSegment(
            id=str(item["id"]),
            title=str(item.get("title") or ""),
            start_time=start,
            end_time=end,
        ))
    return segments


def parse_sounds_by_segment(raw) -> SoundsBySegment:
    """Validate a soundsBySegment payload. Raises ValidationError."""
    if not isinstance(raw, dict):
        raise ValidationError("soundsBySegment must be an object")
    result: SoundsBySegment = {}
    for segment_id, entries in raw.items():
        if not isinstance(entries, list):
            raise ValidationError("soundsBySegment values must be lists", {"segment": segment_id})
        parsed = []
        for entry in entries:
            parsed_entry = SegmentEntry.from_raw(entry)
            if parsed_entry is None:
                raise ValidationError("invalid soundsBySegment entry", {"segment": segment_id, "entry": entry})
            parsed.append(parsed_entry)
        result[str(segment_id)] = parsed
    return result


def segments_to_dicts(segments: List[TimelineSegment]) -> List[Dict[str, Any]]:
    return [s.to_dict() for s in segments]
