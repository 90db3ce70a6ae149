"""
Device-local preferences persisted as a small JSON file.

Holds the saved-photo marker set used for gallery de-duplication plus the
auto-save and notification toggles. Writes go to a temporary file that is
then renamed over the original, so a crash mid-write leaves the previous
contents intact.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Set, Union

logger = logging.getLogger(__name__)

SAVED_PHOTO_IDS = "saved_photo_ids"
AUTO_SAVE_ENABLED = "auto_save_enabled"
NOTIFICATIONS_ENABLED = "notifications_enabled"


def saved_photo_key(circle_id: str, photo_id: str) -> str:
    """Marker key for one photo of one circle."""
    return f"{circle_id}:{photo_id}"


class LocalPreferences:
    """Async access to the preferences file; all reads are served from memory."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._data: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            logger.error(f"Preferences file {self._path} is corrupt, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self._path)

    async def _load(self) -> Dict[str, Any]:
        if self._data is None:
            self._data = await asyncio.to_thread(self._read)
        return self._data

    async def _set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = dict(await self._load())
            data[key] = value
            await asyncio.to_thread(self._write, data)
            self._data = data

    # ─────────────────────────────────────────────────────────────────
    # Saved photo markers
    # ─────────────────────────────────────────────────────────────────

    async def saved_keys(self) -> Set[str]:
        data = await self._load()
        return set(data.get(SAVED_PHOTO_IDS, []))

    async def is_saved(self, circle_id: str, photo_id: str) -> bool:
        return saved_photo_key(circle_id, photo_id) in await self.saved_keys()

    async def mark_saved(self, circle_id: str, photo_id: str) -> None:
        """Record that a photo is in the device gallery."""
        key = saved_photo_key(circle_id, photo_id)
        async with self._lock:
            data = dict(await self._load())
            saved = list(data.get(SAVED_PHOTO_IDS, []))
            if key in saved:
                return
            saved.append(key)
            data[SAVED_PHOTO_IDS] = saved
            await asyncio.to_thread(self._write, data)
            self._data = data

    # ─────────────────────────────────────────────────────────────────
    # Toggles
    # ─────────────────────────────────────────────────────────────────

    async def auto_save_enabled(self) -> bool:
        data = await self._load()
        return bool(data.get(AUTO_SAVE_ENABLED, False))

    async def set_auto_save_enabled(self, enabled: bool) -> None:
        await self._set(AUTO_SAVE_ENABLED, bool(enabled))

    async def notifications_enabled(self) -> bool:
        data = await self._load()
        return bool(data.get(NOTIFICATIONS_ENABLED, True))

    async def set_notifications_enabled(self, enabled: bool) -> None:
        await self._set(NOTIFICATIONS_ENABLED, bool(enabled))
