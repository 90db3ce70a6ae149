"""
Crcle Pipelines.

Business logic orchestration functions.
"""

from crcle.pipelines.photos import CircleUploadResult, upload_photo_to_circles_pipeline

__all__ = ["CircleUploadResult", "upload_photo_to_circles_pipeline"]
