"""
Auto-save of circle photos into the device gallery.

Every path that saves a photo (snapshot-triggered auto-save, manual save of
a selection, marking one's own upload) goes through ``AutoSaveEngine`` and
its shared ``InFlightGuard``. The guard is checked and claimed without an
intervening await, so two tasks racing on the same (circle, photo) pair
produce one gallery write and one marker.

Order per photo: claim guard, check marker, download (size capped), write
to gallery, set marker, release guard. The marker is only set after a
successful write; a failure leaves the photo eligible for the next attempt.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

from pymongo.errors import PyMongoError

from common.storage import BlobStore, BlobTooLargeError, StorageError
from config import settings
from crcle.client.gallery import GallerySaver, gallery_display_name
from crcle.client.preferences import LocalPreferences, saved_photo_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_DOWNLOAD_BYTES = 10 * 1024 * 1024

SaveKey = Tuple[str, str]
ProgressCallback = Callable[[str, bool], None]


class SaveOutcome(str, Enum):
    SAVED = "saved"
    ALREADY_SAVED = "already_saved"
    IN_FLIGHT = "in_flight"
    SKIPPED = "skipped"
    FAILED = "failed"


class InFlightGuard:
    """Process-wide set of (circle_id, photo_id) pairs currently being saved."""

    def __init__(self):
        self._keys: Set[SaveKey] = set()

    def try_acquire(self, key: SaveKey) -> bool:
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def release(self, key: SaveKey) -> None:
        self._keys.discard(key)

    def __contains__(self, key: SaveKey) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class AutoSaveEngine:
    """Downloads photos to the gallery at most once per device."""

    def __init__(
        self,
        blob_store: BlobStore,
        preferences: LocalPreferences,
        gallery: GallerySaver,
        guard: Optional[InFlightGuard] = None,
        max_download_bytes: int = DEFAULT_MAX_DOWNLOAD_BYTES,
    ):
        self._blob_store = blob_store
        self._preferences = preferences
        self._gallery = gallery
        self._guard = guard or InFlightGuard()
        self._max_download_bytes = max_download_bytes

    @property
    def guard(self) -> InFlightGuard:
        return self._guard

    @property
    def preferences(self) -> LocalPreferences:
        return self._preferences

    async def ensure_saved(
        self,
        circle_id: str,
        photo_id: str,
        storage_path: str,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SaveOutcome:
        """
        Save one photo to the gallery unless it is already there.

        Args:
            circle_id: Circle the photo belongs to
            photo_id: Photo ID
            storage_path: Blob path of the image
            force: Save even if the marker says it was saved before
            on_progress: Called with (photo_id, True) when work starts and
                (photo_id, False) when it ends

        Returns:
            SaveOutcome
        """
        if not storage_path or not storage_path.strip():
            return SaveOutcome.SKIPPED

        key = (circle_id, photo_id)
        if not self._guard.try_acquire(key):
            return SaveOutcome.IN_FLIGHT

        if on_progress:
            on_progress(photo_id, True)
        try:
            if not force and await self._preferences.is_saved(circle_id, photo_id):
                return SaveOutcome.ALREADY_SAVED

            data = await self._blob_store.download_bytes(storage_path, self._max_download_bytes)
            await self._gallery.save_jpeg(data, gallery_display_name(circle_id, photo_id))
            await self._preferences.mark_saved(circle_id, photo_id)
            return SaveOutcome.SAVED

        except BlobTooLargeError as e:
            logger.warning(f"Not saving photo {photo_id} of circle {circle_id}: {e}")
            return SaveOutcome.FAILED
        except (StorageError, PyMongoError, OSError) as e:
            logger.warning(f"Failed to save photo {photo_id} of circle {circle_id}: {e}")
            return SaveOutcome.FAILED
        finally:
            self._guard.release(key)
            if on_progress:
                on_progress(photo_id, False)

    async def ensure_saved_all(
        self,
        circle_id: str,
        photos: Iterable[Tuple[str, str]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, SaveOutcome]:
        """
        Save every (photo_id, storage_path) not yet saved, one at a time.

        Photos already marked or already in flight are skipped up front.
        """
        saved = await self._preferences.saved_keys()
        outcomes: Dict[str, SaveOutcome] = {}

        for photo_id, storage_path in photos:
            if saved_photo_key(circle_id, photo_id) in saved:
                outcomes[photo_id] = SaveOutcome.ALREADY_SAVED
                continue
            if (circle_id, photo_id) in self._guard:
                outcomes[photo_id] = SaveOutcome.IN_FLIGHT
                continue
            outcomes[photo_id] = await self.ensure_saved(
                circle_id, photo_id, storage_path, on_progress=on_progress
            )

        return outcomes

    async def mark_uploaded(self, circle_id: str, photo_id: str) -> None:
        """The device already has this image; never download it back."""
        await self._preferences.mark_saved(circle_id, photo_id)

    async def mark_uploads(self, results: Iterable) -> int:
        """
        Mark every successful per-circle upload result as saved.

        Accepts the results of the photo fan-out pipeline. Returns the
        number of markers written.
        """
        marked = 0
        for result in results:
            if result.success and result.photo is not None:
                await self.mark_uploaded(result.circle_id, result.photo.id)
                marked += 1
        return marked


def create_auto_save_engine(
    blob_store: BlobStore,
    preferences_path: Optional[str] = None,
    gallery_path: Optional[str] = None,
    guard: Optional[InFlightGuard] = None,
) -> AutoSaveEngine:
    """Engine wired to the configured preferences file and gallery album."""
    preferences = LocalPreferences(Path(preferences_path or settings.CLIENT_PREFERENCES_PATH))
    gallery = GallerySaver(Path(gallery_path or settings.CLIENT_GALLERY_PATH))
    return AutoSaveEngine(
        blob_store,
        preferences,
        gallery,
        guard=guard,
        max_download_bytes=settings.MAX_PHOTO_BYTES,
    )
