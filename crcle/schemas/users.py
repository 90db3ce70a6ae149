"""
Pydantic models for user profiles.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserDocument(BaseModel):
    """User profile; the document _id is the identity-provider uid."""
    model_config = ConfigDict(extra="ignore")

    uid: str
    email: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    displayName: Optional[str] = None
    photoUrl: Optional[str] = None
    createdAt: Optional[datetime] = None
    friends: List[str] = Field(default_factory=list)
    blockedUsers: List[str] = Field(default_factory=list)
    autoAcceptInvites: bool = False

    @field_validator("createdAt", mode="before")
    @classmethod
    def ensure_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_mongo(cls, doc: Dict[str, Any]) -> "UserDocument":
        data = dict(doc)
        if "_id" in data:
            data["uid"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_profile(self) -> Dict[str, Any]:
        """Public profile fields shown to other users."""
        return {
            "uid": self.uid,
            "username": self.username,
            "displayName": self.displayName,
            "photoUrl": self.photoUrl,
        }


class UpdateMeRequest(BaseModel):
    """Request body for updating the caller's own profile."""
    displayName: Optional[str] = Field(None, min_length=1, max_length=100)
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_.]+$")
    autoAcceptInvites: Optional[bool] = None
