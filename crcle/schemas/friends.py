"""
Pydantic models for friend requests and block management.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FriendRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


def pair_key(uid_a: str, uid_b: str) -> str:
    """Order-independent key for a pair of users."""
    first, second = sorted((uid_a, uid_b))
    return f"{first}:{second}"


class FriendRequestDocument(BaseModel):
    """Friend request as stored in the friendrequests collection."""
    model_config = ConfigDict(extra="ignore")

    id: str
    senderUid: str
    receiverUid: str
    status: FriendRequestStatus = FriendRequestStatus.PENDING
    timestamp: datetime
    pairKey: str

    @field_validator("timestamp", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_mongo(cls, doc: Dict[str, Any]) -> "FriendRequestDocument":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data.setdefault("pairKey", pair_key(data["senderUid"], data["receiverUid"]))
        return cls.model_validate(data)


class SendFriendRequestRequest(BaseModel):
    """Request body for sending a friend request by username."""
    username: str = Field(..., min_length=1, max_length=50)


class BlockUserRequest(BaseModel):
    """Request body for blocking a user."""
    uid: str = Field(..., min_length=1)
