"""
Crcle Services.

All service classes organized by feature.
"""

# User services
from crcle.services.users.user_service import UserService

# Circle services
from crcle.services.circles.purge import CirclePurger, PurgeResult
from crcle.services.circles.circle_service import CircleService
from crcle.services.circles.photo_service import PhotoService
from crcle.services.circles.invite_service import InviteService

# Friend services
from crcle.services.friends.friend_service import FriendService

__all__ = [
    "UserService",
    "CirclePurger",
    "PurgeResult",
    "CircleService",
    "PhotoService",
    "InviteService",
    "FriendService",
]
