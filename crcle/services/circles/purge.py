"""
Circle purge shared by owner deletion and the scheduled cleanup job.

Blobs are removed by storage prefix, not by enumerating photo metadata, so
blobs orphaned by a failed metadata write are reclaimed too. Metadata
changes for one circle commit in a single transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.database import start_transaction
from common.storage import BlobStore
from crcle.database.collections import CIRCLES, CIRCLE_PHOTOS, CIRCLE_INVITES

logger = logging.getLogger(__name__)


def circle_storage_prefix(circle_id: str) -> str:
    return f"circles/{circle_id}/"


@dataclass
class PurgeResult:
    """Counts from purging one circle."""
    circle_id: str
    blobs_deleted: int = 0
    blobs_failed: int = 0
    photos_deleted: int = 0
    circle_updated: bool = False


class CirclePurger:
    """Deletes a circle's blobs and metadata."""

    def __init__(self, db: AsyncIOMotorDatabase, blob_store: BlobStore):
        self._db = db
        self._blob_store = blob_store
        self._circles_collection = db[CIRCLES]
        self._photos_collection = db[CIRCLE_PHOTOS]
        self._invites_collection = db[CIRCLE_INVITES]

    async def _purge_blobs(self, result: PurgeResult) -> None:
        # Listing failures propagate; individual delete failures are counted
        outcome = await self._blob_store.delete_prefix(circle_storage_prefix(result.circle_id))
        result.blobs_deleted = outcome.deleted
        result.blobs_failed = outcome.failed

    async def mark_cleaned(self, circle_id: str, now: datetime) -> PurgeResult:
        """
        Scheduled purge: delete contents and pending invites, then flip ``cleanedUp``.

        The circle document stays as a tombstone. The flag update only
        matches while ``cleanedUp`` is false, so a concurrent run that lost
        the race reports ``circle_updated=False``.

        Raises:
            StorageError: If the storage prefix cannot be listed
            PyMongoError: If the transaction fails (circle is retried next run)
        """
        result = PurgeResult(circle_id=circle_id)
        await self._purge_blobs(result)

        oid = ObjectId(circle_id)
        async with start_transaction(self._db) as session:
            deleted = await self._photos_collection.delete_many(
                {"circleId": oid}, session=session
            )
            await self._invites_collection.delete_many({"circleId": oid}, session=session)
            updated = await self._circles_collection.update_one(
                {"_id": oid, "cleanedUp": False},
                {"$set": {"cleanedUp": True, "cleanedAt": now}},
                session=session,
            )

        result.photos_deleted = deleted.deleted_count
        result.circle_updated = updated.modified_count == 1
        return result

    async def delete_entirely(self, circle_id: str) -> PurgeResult:
        """
        Owner deletion: delete contents, pending invites and the circle.

        Raises:
            StorageError: If the storage prefix cannot be listed
            PyMongoError: If the transaction fails
        """
        result = PurgeResult(circle_id=circle_id)
        await self._purge_blobs(result)

        if result.blobs_failed:
            logger.warning(
                f"Circle {circle_id}: {result.blobs_failed} blob(s) could not be deleted"
            )

        oid = ObjectId(circle_id)
        async with start_transaction(self._db) as session:
            deleted = await self._photos_collection.delete_many(
                {"circleId": oid}, session=session
            )
            await self._invites_collection.delete_many({"circleId": oid}, session=session)
            removed = await self._circles_collection.delete_one({"_id": oid}, session=session)

        result.photos_deleted = deleted.deleted_count
        result.circle_updated = removed.deleted_count == 1
        return result
