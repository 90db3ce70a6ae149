"""
Photo fan-out pipeline.

Stateless orchestration for uploading one image to several circles.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pymongo.errors import PyMongoError

from common.storage import StorageError
from common.utils.exceptions import APIException
from crcle.schemas.circles import PhotoDocument
from crcle.services.circles.photo_service import PhotoService

logger = logging.getLogger(__name__)


@dataclass
class CircleUploadResult:
    """Outcome of the upload into one target circle."""
    circle_id: str
    success: bool
    photo: Optional[PhotoDocument] = None
    error: Optional[str] = None
    code: Optional[str] = None

    def to_response(self) -> dict:
        return {
            "circleId": self.circle_id,
            "success": self.success,
            "photoId": self.photo.id if self.photo else None,
            "error": self.error,
            "code": self.code,
        }


async def upload_photo_to_circles_pipeline(
    photo_service: PhotoService,
    circle_ids: List[str],
    image_bytes: bytes,
    uploader_uid: str,
    on_result: Optional[Callable[[CircleUploadResult], None]] = None,
) -> List[CircleUploadResult]:
    """
    Upload one image into each target circle concurrently.

    Each circle is an independent ingestion; a failure in one never rolls
    back or hides success in another. Closed circles fail with
    "Circle is closed".

    Args:
        photo_service: For the per-circle ingestion
        circle_ids: Target circles (duplicates ignored)
        image_bytes: Encoded JPEG
        uploader_uid: Uploading user
        on_result: Called once per circle as soon as its outcome is known

    Returns:
        One result per distinct circle, in request order
    """
    targets = list(dict.fromkeys(circle_ids))

    async def _upload_one(circle_id: str) -> CircleUploadResult:
        try:
            photo = await photo_service.upload_photo(circle_id, image_bytes, uploader_uid)
            result = CircleUploadResult(circle_id=circle_id, success=True, photo=photo)
        except APIException as e:
            result = CircleUploadResult(
                circle_id=circle_id,
                success=False,
                error=e.message,
                code=e.code,
            )
        except (StorageError, PyMongoError) as e:
            logger.warning(f"Upload to circle {circle_id} failed: {e}")
            result = CircleUploadResult(
                circle_id=circle_id,
                success=False,
                error="Temporary storage or network failure, please retry",
                code="TRANSIENT_IO",
            )

        if on_result:
            on_result(result)
        return result

    results = await asyncio.gather(*(_upload_one(circle_id) for circle_id in targets))

    succeeded = sum(1 for r in results if r.success)
    logger.info(f"Fan-out upload by {uploader_uid}: {succeeded}/{len(results)} circles")
    return list(results)
