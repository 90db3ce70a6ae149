"""Unit tests for CirclePurger and the expired circle cleanup job."""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from common.storage import PrefixDeleteResult, StorageError
from crcle.database import CIRCLES, CIRCLE_INVITES, CIRCLE_PHOTOS
from crcle.services.circles.purge import CirclePurger, PurgeResult
from jobs.cleanup_expired_circles import CircleCleanupJob
from tests.conftest import make_cursor


# ─────────────────────────────────────────────────────────────────
# CirclePurger
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def purger(multi_db, mock_blob_store):
    return CirclePurger(multi_db, mock_blob_store)


class TestMarkCleaned:
    @pytest.mark.asyncio
    async def test_purges_prefix_then_flags_in_transaction(
        self, purger, multi_db, mock_blob_store, mock_session, now
    ):
        circle_id = str(ObjectId())
        mock_blob_store.delete_prefix.return_value = PrefixDeleteResult(deleted=4, failed=1)
        multi_db[CIRCLE_PHOTOS].delete_many.return_value = MagicMock(deleted_count=4)
        multi_db[CIRCLES].update_one.return_value = MagicMock(modified_count=1)

        result = await purger.mark_cleaned(circle_id, now)

        mock_blob_store.delete_prefix.assert_called_once_with(f"circles/{circle_id}/")
        multi_db[CIRCLE_PHOTOS].delete_many.assert_called_once_with(
            {"circleId": ObjectId(circle_id)}, session=mock_session
        )
        multi_db[CIRCLE_INVITES].delete_many.assert_called_once_with(
            {"circleId": ObjectId(circle_id)}, session=mock_session
        )
        multi_db[CIRCLES].update_one.assert_called_once_with(
            {"_id": ObjectId(circle_id), "cleanedUp": False},
            {"$set": {"cleanedUp": True, "cleanedAt": now}},
            session=mock_session,
        )
        assert result == PurgeResult(
            circle_id=circle_id, blobs_deleted=4, blobs_failed=1,
            photos_deleted=4, circle_updated=True,
        )

    @pytest.mark.asyncio
    async def test_listing_failure_leaves_metadata_untouched(
        self, purger, multi_db, mock_blob_store, now
    ):
        mock_blob_store.delete_prefix.side_effect = StorageError("list failed")

        with pytest.raises(StorageError):
            await purger.mark_cleaned(str(ObjectId()), now)

        multi_db[CIRCLES].update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_lost_race_reports_not_updated(self, purger, multi_db, mock_blob_store, now):
        mock_blob_store.delete_prefix.return_value = PrefixDeleteResult()
        multi_db[CIRCLE_PHOTOS].delete_many.return_value = MagicMock(deleted_count=0)
        multi_db[CIRCLES].update_one.return_value = MagicMock(modified_count=0)

        result = await purger.mark_cleaned(str(ObjectId()), now)

        assert result.circle_updated is False


class TestDeleteEntirely:
    @pytest.mark.asyncio
    async def test_removes_photos_invites_and_circle(
        self, purger, multi_db, mock_blob_store, mock_session
    ):
        circle_id = str(ObjectId())
        mock_blob_store.delete_prefix.return_value = PrefixDeleteResult(deleted=2)
        multi_db[CIRCLE_PHOTOS].delete_many.return_value = MagicMock(deleted_count=2)
        multi_db[CIRCLES].delete_one.return_value = MagicMock(deleted_count=1)

        result = await purger.delete_entirely(circle_id)

        oid = ObjectId(circle_id)
        multi_db[CIRCLE_INVITES].delete_many.assert_called_once_with(
            {"circleId": oid}, session=mock_session
        )
        multi_db[CIRCLES].delete_one.assert_called_once_with({"_id": oid}, session=mock_session)
        assert result.photos_deleted == 2
        assert result.circle_updated is True


# ─────────────────────────────────────────────────────────────────
# CircleCleanupJob
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_purger():
    return AsyncMock()


@pytest.fixture
def job(multi_db, mock_purger):
    return CircleCleanupJob(multi_db, mock_purger, batch_size=25)


class TestCleanupJob:
    @pytest.mark.asyncio
    async def test_queries_due_uncleaned_circles_with_batch_limit(
        self, job, multi_db, mock_purger, now
    ):
        cursor = make_cursor([])
        multi_db[CIRCLES].find.return_value = cursor

        await job.run(now=now)

        query = multi_db[CIRCLES].find.call_args[0][0]
        assert query == {"cleanedUp": False, "deleteAt": {"$lte": now}}
        cursor.limit.assert_called_once_with(25)
        mock_purger.mark_cleaned.assert_not_called()

    @pytest.mark.asyncio
    async def test_purges_each_due_circle(self, job, multi_db, mock_purger, now):
        ids = [ObjectId(), ObjectId()]
        multi_db[CIRCLES].find.return_value = make_cursor([{"_id": oid} for oid in ids])
        mock_purger.mark_cleaned.side_effect = lambda cid, _now: PurgeResult(
            circle_id=cid, blobs_deleted=3, photos_deleted=3, circle_updated=True
        )

        results = await job.run(now=now)

        assert results["circlesProcessed"] == 2
        assert results["blobsDeleted"] == 6
        assert results["photosDeleted"] == 6
        assert results["errors"] == []
        assert [c.args[0] for c in mock_purger.mark_cleaned.call_args_list] == [str(i) for i in ids]

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, job, multi_db, mock_purger, now):
        oid = ObjectId()
        multi_db[CIRCLES].find.side_effect = [
            make_cursor([{"_id": oid}]),
            make_cursor([]),
        ]
        mock_purger.mark_cleaned.return_value = PurgeResult(
            circle_id=str(oid), blobs_deleted=5, photos_deleted=5, circle_updated=True
        )

        first = await job.run(now=now)
        second = await job.run(now=now + timedelta(hours=1))

        assert first["blobsDeleted"] == 5
        assert second["circlesProcessed"] == 0
        assert second["blobsDeleted"] == 0
        assert mock_purger.mark_cleaned.call_count == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self, job, multi_db, mock_purger, now):
        bad, good = ObjectId(), ObjectId()
        multi_db[CIRCLES].find.return_value = make_cursor([{"_id": bad}, {"_id": good}])
        mock_purger.mark_cleaned.side_effect = [
            StorageError("list failed"),
            PurgeResult(circle_id=str(good), blobs_deleted=1, circle_updated=True),
        ]

        results = await job.run(now=now)

        assert results["circlesProcessed"] == 1
        assert len(results["errors"]) == 1
        assert str(bad) in results["errors"][0]

    @pytest.mark.asyncio
    async def test_blob_failures_are_counted_not_fatal(self, job, multi_db, mock_purger, now):
        oid = ObjectId()
        multi_db[CIRCLES].find.return_value = make_cursor([{"_id": oid}])
        mock_purger.mark_cleaned.return_value = PurgeResult(
            circle_id=str(oid), blobs_deleted=2, blobs_failed=1, circle_updated=True
        )

        results = await job.run(now=now)

        assert results["blobFailures"] == 1
        assert results["errors"] == []
