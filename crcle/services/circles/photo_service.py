"""
Photo ingestion and listing for a single circle.

Uploads write the blob first and the metadata record second. If the
metadata write fails the blob is orphaned under the circle prefix and is
reclaimed when the circle is purged.
"""

import logging
import time
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.storage import BlobStore, StorageError
from common.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from crcle.database.collections import CIRCLE_PHOTOS
from crcle.schemas.circles import PhotoDocument
from crcle.services.circles.circle_service import CircleService
from crcle.services.circles.lifecycle import CirclePhase, circle_lifecycle, utc_now_ms
from crcle.services.circles.purge import circle_storage_prefix
from crcle.services.users.user_service import UserService

logger = logging.getLogger(__name__)


def photo_storage_path(circle_id: str, photo_id: str) -> str:
    return f"{circle_storage_prefix(circle_id)}{photo_id}.jpg"


class PhotoService:
    """
    Photo upload, listing, deletion and download-URL resolution.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        blob_store: BlobStore,
        circle_service: CircleService,
        user_service: UserService,
        max_photo_bytes: int = 10 * 1024 * 1024,
        max_cached_urls: int = 4096,
    ):
        self._db = db
        self._photos_collection = db[CIRCLE_PHOTOS]
        self._blob_store = blob_store
        self._circle_service = circle_service
        self._user_service = user_service
        self._max_photo_bytes = max_photo_bytes
        # storage path -> (url, expires at monotonic seconds)
        self._url_cache: Dict[str, Tuple[str, float]] = {}
        self._url_ttl = blob_store.signed_url_expiration / 2
        self._max_cached_urls = max(1, max_cached_urls)

    async def upload_photo(
        self,
        circle_id: str,
        image_bytes: bytes,
        uploader_uid: str,
        now: Optional[datetime] = None,
    ) -> PhotoDocument:
        """
        Store a photo in an open circle.

        Args:
            circle_id: Target circle
            image_bytes: Encoded JPEG
            uploader_uid: Uploading member
            now: Clock override for the phase check

        Returns:
            Created PhotoDocument

        Raises:
            ValidationException: If the image is empty or too large
            NotFoundException: If the circle does not exist
            ForbiddenException: If the uploader is not a member
            ConflictException: If the circle is closed
            StorageError: If the blob write fails
        """
        if not image_bytes:
            raise ValidationException(message="Image is empty", code="EMPTY_IMAGE")
        if len(image_bytes) > self._max_photo_bytes:
            raise ValidationException(
                message=f"Image exceeds {self._max_photo_bytes} bytes",
                code="PHOTO_TOO_LARGE",
            )

        circle = await self._circle_service.get_circle_for_member(circle_id, uploader_uid)

        now = now or utc_now_ms()
        if circle_lifecycle(circle, now).phase == CirclePhase.CLOSED:
            raise ConflictException(message="Circle is closed", code="CIRCLE_CLOSED")

        photo_oid = ObjectId()
        storage_path = photo_storage_path(circle.id, str(photo_oid))

        await self._blob_store.upload_bytes(storage_path, image_bytes)

        photo_doc = {
            "_id": photo_oid,
            "circleId": ObjectId(circle.id),
            "uploaderUid": uploader_uid,
            "storagePath": storage_path,
            "createdAt": now,
        }
        await self._photos_collection.insert_one(photo_doc)

        logger.info(f"Photo {photo_oid} uploaded to circle {circle.id} by {uploader_uid}")
        return PhotoDocument.from_mongo(photo_doc)

    async def list_photos(self, circle_id: str, viewer_uid: str) -> List[PhotoDocument]:
        """
        Photos of a circle in upload order, hiding uploaders the viewer blocked.
        """
        await self._circle_service.get_circle_for_member(circle_id, viewer_uid)

        cursor = self._photos_collection.find({"circleId": ObjectId(circle_id)})
        cursor = cursor.sort("createdAt", 1)
        docs = await cursor.to_list(length=None)
        photos = [PhotoDocument.from_mongo(doc) for doc in docs]

        viewer = await self._user_service.find_user(viewer_uid)
        blocked = set(viewer.blockedUsers) if viewer else set()
        return [p for p in photos if p.uploaderUid not in blocked]

    async def delete_photo(self, circle_id: str, photo_id: str, requester_uid: str) -> None:
        """
        Delete one photo. Allowed for its uploader and the circle owner.

        Raises:
            NotFoundException: If the circle or photo does not exist
            ForbiddenException: If requester is neither uploader nor owner
        """
        circle = await self._circle_service.get_circle(circle_id)

        if not ObjectId.is_valid(photo_id):
            raise NotFoundException(message="Photo not found", code="PHOTO_NOT_FOUND")

        doc = await self._photos_collection.find_one(
            {"_id": ObjectId(photo_id), "circleId": ObjectId(circle.id)}
        )
        if not doc:
            raise NotFoundException(message="Photo not found", code="PHOTO_NOT_FOUND")
        photo = PhotoDocument.from_mongo(doc)

        if requester_uid not in (photo.uploaderUid, circle.ownerUid):
            raise ForbiddenException(
                message="Only the uploader or the circle owner can delete this photo",
                code="NOT_PHOTO_OWNER",
            )

        await self._blob_store.delete(photo.storagePath)
        await self._photos_collection.delete_one({"_id": ObjectId(photo.id)})
        self._url_cache.pop(photo.storagePath, None)

        logger.info(f"Photo {photo.id} deleted from circle {circle.id} by {requester_uid}")

    async def get_download_url(self, storage_path: str) -> Optional[str]:
        """
        Resolve a display URL for a blob, cached per storage path.

        Returns None when resolution fails; callers show a loading state.
        """
        cached = self._url_cache.get(storage_path)
        if cached and cached[1] > time.monotonic():
            return cached[0]

        try:
            url = await self._blob_store.get_download_url(storage_path)
        except StorageError as e:
            logger.warning(f"Download URL unavailable for {storage_path}: {e}")
            return None

        self._remember_url(storage_path, url)
        return url

    def _remember_url(self, storage_path: str, url: str) -> None:
        now = time.monotonic()
        self._url_cache.pop(storage_path, None)
        if len(self._url_cache) >= self._max_cached_urls:
            for path in [p for p, (_, expires) in self._url_cache.items() if expires <= now]:
                del self._url_cache[path]
        # Insertion order is resolution order; drop the oldest when still full
        while len(self._url_cache) >= self._max_cached_urls:
            del self._url_cache[next(iter(self._url_cache))]
        self._url_cache[storage_path] = (url, now + self._url_ttl)
