"""
Pydantic schemas for Crcle documents and API request/response validation.
"""

from crcle.schemas.circles import (
    CircleStatus,
    CircleDocument,
    PhotoDocument,
    CircleInviteDocument,
    CreateCircleRequest,
    JoinCircleRequest,
    UpdateCircleRequest,
    AddMemberRequest,
    SendCircleInviteRequest,
)
from crcle.schemas.friends import (
    FriendRequestStatus,
    FriendRequestDocument,
    SendFriendRequestRequest,
    BlockUserRequest,
    pair_key,
)
from crcle.schemas.users import UserDocument, UpdateMeRequest

__all__ = [
    # Circles
    "CircleStatus",
    "CircleDocument",
    "PhotoDocument",
    "CircleInviteDocument",
    "CreateCircleRequest",
    "JoinCircleRequest",
    "UpdateCircleRequest",
    "AddMemberRequest",
    "SendCircleInviteRequest",
    # Friends
    "FriendRequestStatus",
    "FriendRequestDocument",
    "SendFriendRequestRequest",
    "BlockUserRequest",
    "pair_key",
    # Users
    "UserDocument",
    "UpdateMeRequest",
]
