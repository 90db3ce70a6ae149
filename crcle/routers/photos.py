"""
FastAPI router for photo endpoints.

Uploads fan out to several circles with per-circle results; listing
resolves display URLs lazily and leaves them null when resolution fails.
"""

import asyncio
import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from common.utils import list_response, success_response
from common.utils.exceptions import ValidationException
from config import settings
from crcle.dependencies import require_auth, get_photo_service
from crcle.pipelines.photos import upload_photo_to_circles_pipeline
from crcle.schemas.users import UserDocument

logger = logging.getLogger(__name__)

router = APIRouter(tags=["photos"])


@router.post("/photos")
async def upload_photo(
    user: Annotated[UserDocument, Depends(require_auth)],
    file: UploadFile = File(..., description="JPEG image"),
    circleIds: List[str] = Form(..., description="Target circle IDs"),
):
    """
    Upload one image to each selected circle.

    Partial success is reported per circle; closed circles are skipped
    with "Circle is closed".
    """
    photo_service = get_photo_service()

    image_bytes = await file.read(settings.MAX_PHOTO_BYTES + 1)
    if not image_bytes:
        raise ValidationException(message="Image is empty", code="EMPTY_IMAGE")
    if len(image_bytes) > settings.MAX_PHOTO_BYTES:
        raise ValidationException(message="Image is too large", code="PHOTO_TOO_LARGE")

    results = await upload_photo_to_circles_pipeline(
        photo_service=photo_service,
        circle_ids=circleIds,
        image_bytes=image_bytes,
        uploader_uid=user.uid,
    )

    return success_response({
        "results": [r.to_response() for r in results],
        "allSucceeded": all(r.success for r in results),
    })


@router.get("/circles/{circle_id}/photos")
async def list_photos(
    circle_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
    includeUrls: bool = Query(default=True, description="Resolve display URLs"),
):
    """Photos of a circle in upload order, without uploaders the caller blocked."""
    photo_service = get_photo_service()

    photos = await photo_service.list_photos(circle_id, user.uid)

    urls = [None] * len(photos)
    if includeUrls and photos:
        urls = await asyncio.gather(
            *(photo_service.get_download_url(p.storagePath) for p in photos)
        )

    return list_response([
        {
            "id": p.id,
            "circleId": p.circleId,
            "uploaderUid": p.uploaderUid,
            "storagePath": p.storagePath,
            "createdAt": p.createdAt.isoformat(),
            "downloadUrl": url,
        }
        for p, url in zip(photos, urls)
    ])


@router.delete("/circles/{circle_id}/photos/{photo_id}")
async def delete_photo(
    circle_id: str,
    photo_id: str,
    user: Annotated[UserDocument, Depends(require_auth)],
):
    """Delete a photo (uploader or circle owner)."""
    photo_service = get_photo_service()

    await photo_service.delete_photo(circle_id, photo_id, user.uid)

    return success_response(message="Photo deleted")
