"""Circle services."""

from crcle.services.circles.lifecycle import (
    CirclePhase,
    LifecycleSnapshot,
    compute_lifecycle,
    circle_lifecycle,
    is_purge_eligible,
)
from crcle.services.circles.purge import CirclePurger, PurgeResult
from crcle.services.circles.circle_service import CircleService
from crcle.services.circles.photo_service import PhotoService
from crcle.services.circles.invite_service import InviteService

__all__ = [
    "CirclePhase",
    "LifecycleSnapshot",
    "compute_lifecycle",
    "circle_lifecycle",
    "is_purge_eligible",
    "CirclePurger",
    "PurgeResult",
    "CircleService",
    "PhotoService",
    "InviteService",
]
