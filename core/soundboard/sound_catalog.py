"""
Sound Catalog - Sound, Schedule and Category CRUD over the manifest document

The manifest is the one document where a stale overwrite corrupts data (a lost
schedule or a schedule pointing at a deleted sound), so every mutation here is
a CAS write: a single attempt against the version the client read when it sent
one, otherwise read + CAS write with bounded retries (store.commit).

Every method returns the affected entity (if any) together with the committed
manifest version, so the client can thread the version into its next call.
"""

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .document_store import VersionedDocumentStore
from .errors import NotFoundError, ValidationError
from .time_range import parse_time, parse_timestamp
from .types import (
    FAVORITES_CATEGORY,
    HIDDEN_CATEGORY,
    SUPPORTED_AUDIO_TYPES,
    Category,
    ManifestDocument,
    Schedule,
    Sound,
    new_id,
)

logger = logging.getLogger('cueboard.catalog')


def _require_name(value, field: str = "name") -> str:
    name = str(value or "").strip()
    if not name:
        raise ValidationError(f"{field} is required")
    return name


def _require_sound(doc: ManifestDocument, sound_id: str) -> Sound:
    sound = doc.find_sound(sound_id)
    if sound is None:
        raise NotFoundError("sound not found", {"id": sound_id})
    return sound


def _require_schedule(doc: ManifestDocument, schedule_id: str) -> Schedule:
    schedule = doc.find_schedule(schedule_id)
    if schedule is None:
        raise NotFoundError("schedule not found", {"id": schedule_id})
    return schedule


def _require_category(doc: ManifestDocument, category_id: str) -> Category:
    category = doc.find_category(category_id)
    if category is None:
        raise NotFoundError("category not found", {"id": category_id})
    return category


def _ensure_category(doc: ManifestDocument, name: str) -> Category:
    """Find a category by name (case-insensitive), creating it if needed."""
    category = doc.find_category_by_name(name)
    if category is None:
        category = Category(id=new_id("cat"), name=name, display_order=len(doc.categories))
        doc.categories.append(category)
        logger.info(f"📁 Auto-created category '{name}'")
    return category


class SoundCatalog:
    """Manifest repository. Thin methods, one write per logical operation."""

    def __init__(self, store: VersionedDocumentStore, public_base_url: str = ""):
        self.store = store
        self.public_base_url = public_base_url.rstrip('/')

    def snapshot(self) -> Tuple[ManifestDocument, int]:
        return self.store.read()

    # ============================================================
    # Sounds
    # ============================================================

    def insert_sound(self, data: dict, expected_version: Optional[int] = None) -> Tuple[Sound, int]:
        """Register an uploaded file in the catalog."""
        name = _require_name(data.get("name"))
        mime_type = str(data.get("type") or data.get("mime_type") or "")
        if mime_type not in SUPPORTED_AUDIO_TYPES:
            raise ValidationError(
                "unsupported audio format",
                {"type": mime_type, "supported": list(SUPPORTED_AUDIO_TYPES)},
            )
        if not data.get("url") and not data.get("file_path"):
            raise ValidationError("url or file_path is required")

        sound_id = new_id("snd")

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            seed = dict(data, id=sound_id, name=name, type=mime_type)
            seed.setdefault("display_order", len(doc.sounds))
            sound = Sound.from_dict(seed)
            if data.get("category_id"):
                _require_category(doc, sound.category_id)
            if not sound.url and sound.file_path:
                sound.url = self.public_url(sound.file_path)
            doc.sounds.append(sound)
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        logger.info(f"🎵 Inserted sound '{name}' ({sound_id})")
        return doc.find_sound(sound_id), version

    def update_sound(self, sound_id: str, changes: dict,
                     expected_version: Optional[int] = None) -> Tuple[Sound, int]:
        """Rename / favorite / category / url / order changes on one sound."""

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            sound = _require_sound(doc, sound_id)
            if "name" in changes:
                sound.name = _require_name(changes["name"])
            if "url" in changes:
                sound.url = str(changes["url"] or "")
            if "is_favorite" in changes:
                sound.is_favorite = bool(changes["is_favorite"])
            if "category_id" in changes:
                category_id = changes["category_id"] or None
                if category_id is not None:
                    _require_category(doc, category_id)
                sound.category_id = category_id
            if "display_order" in changes:
                try:
                    sound.display_order = int(changes["display_order"])
                except (TypeError, ValueError):
                    raise ValidationError("display_order must be an integer")
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        return doc.find_sound(sound_id), version

    def delete_sound(self, sound_id: str, expected_version: Optional[int] = None) -> int:
        """Delete a sound and its schedules in the same write. Unknown id is a no-op."""
        current, version = self.store.read()
        if current.find_sound(sound_id) is None:
            return version

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            doc.sounds = [s for s in doc.sounds if s.id != sound_id]
            doc.schedules = [s for s in doc.schedules if s.sound_id != sound_id]
            return doc

        _, version = self.store.commit(mutate, expected_version)
        logger.info(f"🗑️ Deleted sound {sound_id} with its schedules")
        return version

    def reorder(self, orders: List[dict], expected_version: Optional[int] = None) -> int:
        """Apply [{id, display_order}, ...]. Unknown ids are ignored."""
        if not isinstance(orders, list):
            raise ValidationError("orders must be a list")
        wanted: Dict[str, int] = {}
        for item in orders:
            if not isinstance(item, dict) or not item.get("id"):
                raise ValidationError("each order needs an id")
            try:
                wanted[str(item["id"])] = int(item.get("display_order"))
            except (TypeError, ValueError):
                raise ValidationError("display_order must be an integer", {"id": item["id"]})

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            for sound in doc.sounds:
                if sound.id in wanted:
                    sound.display_order = wanted[sound.id]
            return doc

        _, version = self.store.commit(mutate, expected_version)
        return version

    def toggle_favorite(self, sound_id: str,
                        expected_version: Optional[int] = None) -> Tuple[Sound, Optional[Category], int]:
        """
        Flip is_favorite. Favoriting also files the sound under the reserved
        'Favoriten' category (created on first use); unfavoriting takes it out
        of that category again.
        """
        favorites_id = {}

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            sound = _require_sound(doc, sound_id)
            sound.is_favorite = not sound.is_favorite
            if sound.is_favorite:
                category = _ensure_category(doc, FAVORITES_CATEGORY)
                sound.category_id = category.id
                favorites_id["id"] = category.id
            else:
                category = doc.find_category_by_name(FAVORITES_CATEGORY)
                if category is not None and sound.category_id == category.id:
                    sound.category_id = None
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        category = doc.find_category(favorites_id["id"]) if favorites_id else None
        return doc.find_sound(sound_id), category, version

    def toggle_hidden(self, sound_id: str,
                      expected_version: Optional[int] = None) -> Tuple[Sound, Category, int]:
        """Move a sound into the reserved 'Ausgeblendet' category, or back out of it."""

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            sound = _require_sound(doc, sound_id)
            hidden = _ensure_category(doc, HIDDEN_CATEGORY)
            sound.category_id = None if sound.category_id == hidden.id else hidden.id
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        return doc.find_sound(sound_id), doc.find_category_by_name(HIDDEN_CATEGORY), version

    # ============================================================
    # Schedules
    # ============================================================

    def insert_schedule(self, sound_id: str, time: str, active: bool = True,
                        expected_version: Optional[int] = None) -> Tuple[Schedule, int]:
        """
        Add a schedule for a sound. An identical (sound, time) schedule is
        returned as-is instead of being duplicated.
        """
        normalized = parse_time(time)
        current, version = self.store.read()
        _require_sound(current, sound_id)
        for existing in current.schedules_for(sound_id):
            if existing.time == normalized:
                return existing, version

        schedule_id = new_id("sch")

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            _require_sound(doc, sound_id)
            doc.schedules.append(Schedule(
                id=schedule_id, sound_id=sound_id, time=normalized, active=bool(active),
            ))
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        return doc.find_schedule(schedule_id), version

    def update_schedule(self, schedule_id: str, changes: dict,
                        expected_version: Optional[int] = None) -> Tuple[Schedule, int]:
        new_time = parse_time(changes["time"]) if "time" in changes else None
        last_played = None
        if changes.get("last_played"):
            last_played = parse_timestamp(changes["last_played"]).isoformat()

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            schedule = _require_schedule(doc, schedule_id)
            if new_time is not None:
                schedule.time = new_time
            if "active" in changes:
                schedule.active = bool(changes["active"])
            if "last_played" in changes:
                schedule.last_played = last_played
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        return doc.find_schedule(schedule_id), version

    def mark_played(self, schedule_id: str, at: Optional[datetime] = None,
                    expected_version: Optional[int] = None) -> Tuple[Schedule, int]:
        played_at = (at or datetime.now()).isoformat()
        return self.update_schedule(schedule_id, {"last_played": played_at}, expected_version)

    def delete_schedule(self, schedule_id: str, expected_version: Optional[int] = None) -> int:
        current, version = self.store.read()
        if current.find_schedule(schedule_id) is None:
            return version

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            doc.schedules = [s for s in doc.schedules if s.id != schedule_id]
            return doc

        _, version = self.store.commit(mutate, expected_version)
        return version

    # ============================================================
    # Categories
    # ============================================================

    def insert_category(self, name: str, expected_version: Optional[int] = None) -> Tuple[Category, int]:
        name = _require_name(name)
        category_id = new_id("cat")

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            if doc.find_category_by_name(name) is not None:
                raise ValidationError("category already exists", {"name": name})
            doc.categories.append(Category(id=category_id, name=name, display_order=len(doc.categories)))
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        return doc.find_category(category_id), version

    def update_category(self, category_id: str, changes: dict,
                        expected_version: Optional[int] = None) -> Tuple[Category, int]:

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            category = _require_category(doc, category_id)
            if "name" in changes:
                name = _require_name(changes["name"])
                clash = doc.find_category_by_name(name)
                if clash is not None and clash.id != category_id:
                    raise ValidationError("category already exists", {"name": name})
                category.name = name
            if "display_order" in changes:
                try:
                    category.display_order = int(changes["display_order"])
                except (TypeError, ValueError):
                    raise ValidationError("display_order must be an integer")
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        return doc.find_category(category_id), version

    def delete_category(self, category_id: str, expected_version: Optional[int] = None) -> int:
        """Delete a category and null out category_id on every sound that used it."""
        current, version = self.store.read()
        if current.find_category(category_id) is None:
            return version

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            doc.categories = [c for c in doc.categories if c.id != category_id]
            for sound in doc.sounds:
                if sound.category_id == category_id:
                    sound.category_id = None
            return doc

        _, version = self.store.commit(mutate, expected_version)
        return version

    # ============================================================
    # Maintenance
    # ============================================================

    def public_url(self, file_path: str) -> str:
        path = file_path.lstrip('/')
        return f"{self.public_base_url}/{path}" if self.public_base_url else f"/{path}"

    def normalize_urls(self, expected_version: Optional[int] = None) -> Tuple[List[Sound], int]:
        """
        Rewrite every sound.url from its file_path. Sounds without a file_path
        get one derived from the basename of their current url.
        """

        def mutate(doc: ManifestDocument) -> ManifestDocument:
            for sound in doc.sounds:
                if sound.file_path:
                    sound.url = self.public_url(sound.file_path)
                elif sound.url:
                    base = os.path.basename(urlparse(sound.url).path or "")
                    if base:
                        sound.file_path = f"uploads/sounds/{base}"
                        sound.url = self.public_url(sound.file_path)
            return doc

        doc, version = self.store.commit(mutate, expected_version)
        logger.info(f"🔗 Normalized URLs for {len(doc.sounds)} sounds (version {version})")
        return doc.sounds, version
