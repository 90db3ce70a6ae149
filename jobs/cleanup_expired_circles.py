"""
Expired circle cleanup background job.

Purges circles whose deletion time has passed: every blob under the
circle's storage prefix, every photo record, then flips ``cleanedUp`` so
the circle disappears from listings and is never processed again. The
circle document itself stays as a tombstone.

Each circle is purged independently; one failure is logged and the circle
is retried on the next run.

Usage:
    Run via CRON:
        0 * * * * cd /path/to/project && python -m jobs.cleanup_expired_circles

    Or keep it running:
        python -m jobs.cleanup_expired_circles --loop
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.database import MongoDB
from common.storage import BlobStore
from config import settings
from crcle.database.collections import CIRCLES
from crcle.services.circles.lifecycle import utc_now_ms
from crcle.services.circles.purge import CirclePurger

logger = logging.getLogger(__name__)


class CircleCleanupJob:
    """
    Processes circles that are due for deletion.

    Actions performed for each circle with ``deleteAt <= now`` and
    ``cleanedUp == false``:
    1. Deletes all blobs under ``circles/{circleId}/``
    2. Deletes all photo records of the circle
    3. Sets ``cleanedUp`` (only if still unset, so concurrent runs are safe)
    """

    def __init__(self, db: AsyncIOMotorDatabase, purger: CirclePurger, batch_size: int = 25):
        """
        Initialize the cleanup job.

        Args:
            db: Main database
            purger: Shared circle purger
            batch_size: Maximum circles processed per run
        """
        self._circles_collection = db[CIRCLES]
        self._purger = purger
        self._batch_size = batch_size

    async def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Execute one cleanup pass.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Dict with job results including counts and any errors
        """
        logger.info("Starting expired circle cleanup job")
        start_time = datetime.now(timezone.utc)
        now = now or utc_now_ms()

        results: Dict[str, Any] = {
            "startTime": start_time.isoformat(),
            "circlesProcessed": 0,
            "circlesSkipped": 0,
            "blobsDeleted": 0,
            "blobFailures": 0,
            "photosDeleted": 0,
            "errors": [],
        }

        try:
            circle_ids = await self._get_expired_circle_ids(now)
            logger.info(f"Found {len(circle_ids)} circles due for cleanup")

            for circle_id in circle_ids:
                try:
                    purge = await self._purger.mark_cleaned(circle_id, now)
                    results["blobsDeleted"] += purge.blobs_deleted
                    results["blobFailures"] += purge.blobs_failed
                    results["photosDeleted"] += purge.photos_deleted
                    if purge.circle_updated:
                        results["circlesProcessed"] += 1
                    else:
                        results["circlesSkipped"] += 1

                except Exception as e:
                    error_msg = f"Failed to clean up circle {circle_id}: {str(e)}"
                    logger.error(error_msg)
                    results["errors"].append(error_msg)

        except Exception as e:
            error_msg = f"Job failed: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        results["endTime"] = datetime.now(timezone.utc).isoformat()
        results["durationSeconds"] = (
            datetime.now(timezone.utc) - start_time
        ).total_seconds()

        logger.info(
            f"Circle cleanup job completed. "
            f"Processed: {results['circlesProcessed']} circles, "
            f"Blob failures: {results['blobFailures']}, "
            f"Errors: {len(results['errors'])}"
        )

        return results

    async def _get_expired_circle_ids(self, now: datetime) -> List[str]:
        """IDs of circles past their delete time that are not yet cleaned up."""
        cursor = self._circles_collection.find(
            {"cleanedUp": False, "deleteAt": {"$lte": now}},
            {"_id": 1},
        ).sort("deleteAt", 1).limit(self._batch_size)
        docs = await cursor.to_list(length=self._batch_size)
        return [str(doc["_id"]) for doc in docs]


def _print_results(results: Dict[str, Any]) -> None:
    print("\n=== Circle Cleanup Job Results ===")
    print(f"Start Time: {results['startTime']}")
    print(f"End Time: {results['endTime']}")
    print(f"Duration: {results['durationSeconds']:.2f} seconds")
    print(f"Circles Processed: {results['circlesProcessed']}")
    print(f"Circles Skipped: {results['circlesSkipped']}")
    print(f"Blobs Deleted: {results['blobsDeleted']}")
    print(f"Blob Failures: {results['blobFailures']}")
    print(f"Photos Deleted: {results['photosDeleted']}")

    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for error in results["errors"]:
            print(f"  - {error}")


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the circle cleanup job."""
    parser = argparse.ArgumentParser(description="Purge expired circles")
    parser.add_argument("--loop", action="store_true", help="Run repeatedly instead of once")
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.CLEANUP_INTERVAL_SECONDS,
        help="Seconds between runs with --loop",
    )
    args = parser.parse_args(argv)

    db = MongoDB()
    await db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
        timeout_ms=settings.MONGODB_TIMEOUT_MS,
    )
    blob_store = BlobStore.from_bucket_name(
        settings.GCS_BUCKET,
        project_id=settings.GOOGLE_CLOUD_PROJECT,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
        signed_url_expiration=settings.GCS_SIGNED_URL_EXPIRATION,
    )
    job = CircleCleanupJob(
        db.db,
        CirclePurger(db.db, blob_store),
        batch_size=settings.CLEANUP_BATCH_SIZE,
    )

    try:
        while True:
            results = await job.run()
            _print_results(results)
            if not args.loop:
                return 1 if results["errors"] else 0
            await asyncio.sleep(args.interval)

    finally:
        await db.disconnect()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    sys.exit(asyncio.run(main()))
