"""
Pydantic models for circles, photos and circle invites.

Documents are validated once at the store boundary with ``from_mongo``;
request models validate API input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_utc(value: Any) -> Any:
    # Mongo returns naive datetimes unless the client is tz_aware
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _stringify_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return data


class CircleStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# ─────────────────────────────────────────────────────────────────
# Documents
# ─────────────────────────────────────────────────────────────────

class CircleDocument(BaseModel):
    """Circle as stored in the circles collection."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    ownerUid: str
    inviteCode: str
    members: List[str] = Field(default_factory=list)
    createdAt: datetime
    closeAt: datetime
    deleteAt: datetime
    cleanedUp: bool = False
    status: CircleStatus = CircleStatus.OPEN
    backgroundUrl: Optional[str] = None
    backgroundPath: Optional[str] = None

    @field_validator("createdAt", "closeAt", "deleteAt", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_timeline(self) -> "CircleDocument":
        if not self.createdAt < self.closeAt < self.deleteAt:
            raise ValueError("Circle timestamps must satisfy createdAt < closeAt < deleteAt")
        return self

    @classmethod
    def from_mongo(cls, doc: Dict[str, Any]) -> "CircleDocument":
        return cls.model_validate(_stringify_id(doc))

    def is_member(self, uid: str) -> bool:
        return uid in self.members

    @property
    def storage_prefix(self) -> str:
        return f"circles/{self.id}/"


class PhotoDocument(BaseModel):
    """Photo metadata record; the blob lives at storagePath."""
    model_config = ConfigDict(extra="ignore")

    id: str
    circleId: str
    uploaderUid: str
    storagePath: str
    createdAt: datetime

    @field_validator("createdAt", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        return _as_utc(value)

    @classmethod
    def from_mongo(cls, doc: Dict[str, Any]) -> "PhotoDocument":
        data = _stringify_id(doc)
        data["circleId"] = str(data.get("circleId", ""))
        return cls.model_validate(data)


class CircleInviteDocument(BaseModel):
    """Pending invitation of one user into one circle."""
    model_config = ConfigDict(extra="ignore")

    id: str
    circleId: str
    circleName: str
    inviterUid: str
    inviteeUid: str
    createdAt: datetime

    @field_validator("createdAt", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        return _as_utc(value)

    @classmethod
    def from_mongo(cls, doc: Dict[str, Any]) -> "CircleInviteDocument":
        data = _stringify_id(doc)
        data["circleId"] = str(data.get("circleId", ""))
        return cls.model_validate(data)


# ─────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────

class CreateCircleRequest(BaseModel):
    """Request body for creating a circle."""
    name: str = Field(..., min_length=1, max_length=100)
    durationDays: int = Field(..., ge=1)


class JoinCircleRequest(BaseModel):
    """Request body for joining by invite code."""
    inviteCode: str = Field(..., min_length=1, max_length=32)


class UpdateCircleRequest(BaseModel):
    """Request body for renaming a circle."""
    name: str = Field(..., min_length=1, max_length=100)


class AddMemberRequest(BaseModel):
    """Owner adds a member by username or uid."""
    usernameOrUid: str = Field(..., min_length=1)


class SendCircleInviteRequest(BaseModel):
    """Invite a user into a circle by username."""
    username: str = Field(..., min_length=1)

