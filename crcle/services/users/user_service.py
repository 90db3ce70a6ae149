"""
User directory service.

Profiles are keyed by the identity-provider uid. The first authenticated
request provisions the document; friends, blocks and the auto-accept flag
live on it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import ConflictException, NotFoundException
from crcle.database.collections import USERS
from crcle.schemas.users import UserDocument

logger = logging.getLogger(__name__)


class UserService:
    """Reads and updates user profiles."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._users_collection = db[USERS]

    async def find_user(self, uid: str) -> Optional[UserDocument]:
        doc = await self._users_collection.find_one({"_id": uid})
        return UserDocument.from_mongo(doc) if doc else None

    async def get_user(self, uid: str) -> UserDocument:
        """Get user by uid or raise NotFound."""
        user = await self.find_user(uid)
        if not user:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")
        return user

    async def get_by_username(self, username: str) -> Optional[UserDocument]:
        username = username.strip()
        if not username:
            return None
        doc = await self._users_collection.find_one({"username": username})
        return UserDocument.from_mongo(doc) if doc else None

    async def resolve_user(self, username_or_uid: str) -> Optional[UserDocument]:
        """Look up by username first, then by uid."""
        user = await self.get_by_username(username_or_uid)
        if user:
            return user
        return await self.find_user(username_or_uid.strip())

    async def get_users(self, uids: List[str]) -> List[UserDocument]:
        """Fetch several profiles; unknown uids are skipped."""
        if not uids:
            return []
        cursor = self._users_collection.find({"_id": {"$in": list(uids)}})
        docs = await cursor.to_list(length=len(uids))
        return [UserDocument.from_mongo(doc) for doc in docs]

    async def ensure_user(self, uid: str, claims: Optional[Dict[str, Any]] = None) -> UserDocument:
        """
        Return the caller's profile, creating it on first sight.

        Args:
            uid: Identity-provider uid
            claims: Verified token claims used to seed a new profile

        Returns:
            UserDocument
        """
        claims = claims or {}
        now = datetime.now(timezone.utc)

        doc = await self._users_collection.find_one_and_update(
            {"_id": uid},
            {
                "$setOnInsert": {
                    "email": claims.get("email"),
                    "phone": claims.get("phone_number"),
                    "displayName": claims.get("name"),
                    "photoUrl": claims.get("picture"),
                    "createdAt": now,
                    "friends": [],
                    "blockedUsers": [],
                    "autoAcceptInvites": False,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return UserDocument.from_mongo(doc)

    async def update_profile(
        self,
        uid: str,
        display_name: Optional[str] = None,
        username: Optional[str] = None,
        auto_accept_invites: Optional[bool] = None,
    ) -> UserDocument:
        """
        Update editable profile fields.

        Raises:
            NotFoundException: If the user does not exist
            ConflictException: If the username is taken
        """
        updates: Dict[str, Any] = {}
        if display_name is not None:
            updates["displayName"] = display_name.strip()
        if username is not None:
            updates["username"] = username.strip()
        if auto_accept_invites is not None:
            updates["autoAcceptInvites"] = auto_accept_invites

        if not updates:
            return await self.get_user(uid)

        try:
            doc = await self._users_collection.find_one_and_update(
                {"_id": uid},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise ConflictException(message="Username is already taken", code="USERNAME_TAKEN")

        if not doc:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        logger.info(f"Profile updated for {uid}: {sorted(updates)}")
        return UserDocument.from_mongo(doc)
