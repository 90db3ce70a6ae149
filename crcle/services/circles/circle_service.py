"""
Circle membership and invite-code service.

Creates circles, resolves invite codes into memberships and applies the
owner-only mutations (add, kick, rename, background, delete). Membership
writes use $addToSet/$pull so repeated calls converge instead of failing.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.storage import BlobStore
from common.utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from crcle.database.collections import CIRCLES
from crcle.schemas.circles import CircleDocument, CircleStatus
from crcle.schemas.users import UserDocument
from crcle.services.circles.lifecycle import is_purge_eligible, utc_now_ms
from crcle.services.circles.purge import CirclePurger, PurgeResult, circle_storage_prefix
from crcle.services.users.user_service import UserService

logger = logging.getLogger(__name__)

# No I, O, 0 or 1
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 6


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


class CircleService:
    """
    Circle lifecycle and membership operations.
    """

    MAX_INVITE_CODE_ATTEMPTS = 5

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        user_service: UserService,
        purger: CirclePurger,
        blob_store: BlobStore,
        delete_grace_hours: int = 48,
        min_duration_days: int = 1,
        max_duration_days: int = 7,
    ):
        """
        Initialize CircleService.

        Args:
            db: MongoDB database connection
            user_service: User directory for username resolution
            purger: Shared purge routine (also used by the cleanup job)
            blob_store: Blob storage for background images
            delete_grace_hours: Hours between close and deletion
            min_duration_days: Shortest allowed open window
            max_duration_days: Longest allowed open window
        """
        self._db = db
        self._circles_collection = db[CIRCLES]
        self._user_service = user_service
        self._purger = purger
        self._blob_store = blob_store
        self._delete_grace = timedelta(hours=delete_grace_hours)
        self._min_duration_days = min_duration_days
        self._max_duration_days = max_duration_days

    # ─────────────────────────────────────────────────────────────────
    # Creation and lookup
    # ─────────────────────────────────────────────────────────────────

    async def create_circle(self, name: str, duration_days: int, owner_uid: str) -> CircleDocument:
        """
        Create a circle with the owner as its only member.

        Args:
            name: Display name
            duration_days: Length of the open window in days
            owner_uid: Creator, becomes owner and first member

        Returns:
            Created CircleDocument

        Raises:
            ValidationException: If name is blank or duration out of range
            ConflictException: If no unused invite code could be generated
        """
        name = name.strip()
        if not name:
            raise ValidationException(message="Circle name is required", code="INVALID_NAME")

        if not self._min_duration_days <= duration_days <= self._max_duration_days:
            raise ValidationException(
                message=(
                    f"Duration must be between {self._min_duration_days} "
                    f"and {self._max_duration_days} days"
                ),
                code="INVALID_DURATION",
            )

        now = utc_now_ms()
        close_at = now + timedelta(days=duration_days)
        invite_code = await self._generate_unique_invite_code()

        circle_doc = {
            "name": name,
            "ownerUid": owner_uid,
            "inviteCode": invite_code,
            "members": [owner_uid],
            "createdAt": now,
            "closeAt": close_at,
            "deleteAt": close_at + self._delete_grace,
            "cleanedUp": False,
            "status": CircleStatus.OPEN.value,
        }

        result = await self._circles_collection.insert_one(circle_doc)
        circle_doc["_id"] = result.inserted_id

        logger.info(f"Circle created: {result.inserted_id} by {owner_uid}")
        return CircleDocument.from_mongo(circle_doc)

    async def _generate_unique_invite_code(self) -> str:
        for _ in range(self.MAX_INVITE_CODE_ATTEMPTS):
            code = generate_invite_code()
            existing = await self._circles_collection.find_one(
                {"inviteCode": code, "cleanedUp": False},
                projection={"_id": 1},
            )
            if not existing:
                return code
            logger.warning(f"Invite code collision on {code}, regenerating")

        raise ConflictException(
            message="Could not allocate an invite code, please retry",
            code="INVITE_CODE_COLLISION",
        )

    async def get_circle(self, circle_id: str) -> CircleDocument:
        """Get a live (not purged) circle by ID."""
        if not ObjectId.is_valid(circle_id):
            raise NotFoundException(message="Circle not found", code="CIRCLE_NOT_FOUND")

        doc = await self._circles_collection.find_one({"_id": ObjectId(circle_id)})
        if not doc or doc.get("cleanedUp"):
            raise NotFoundException(message="Circle not found", code="CIRCLE_NOT_FOUND")
        return CircleDocument.from_mongo(doc)

    async def get_circle_for_member(self, circle_id: str, uid: str) -> CircleDocument:
        """Get a circle the caller belongs to."""
        circle = await self.get_circle(circle_id)
        if not circle.is_member(uid):
            raise ForbiddenException(
                message="You are not a member of this circle",
                code="NOT_CIRCLE_MEMBER",
            )
        return circle

    async def get_circle_by_invite_code(self, code: str) -> CircleDocument:
        """
        Resolve an invite code to exactly one live circle.

        Raises:
            NotFoundException: If no live circle has this code
            ConflictException: If more than one live circle has this code
        """
        normalized = normalize_invite_code(code)
        if not normalized:
            raise NotFoundException(message="Invalid invite code", code="INVITE_CODE_NOT_FOUND")

        cursor = self._circles_collection.find({"inviteCode": normalized, "cleanedUp": False})
        docs = await cursor.to_list(length=2)

        if not docs:
            raise NotFoundException(message="Invalid invite code", code="INVITE_CODE_NOT_FOUND")
        if len(docs) > 1:
            logger.error(f"Invite code {normalized} matches more than one circle")
            raise ConflictException(
                message="This invite code is ambiguous, ask for a new one",
                code="AMBIGUOUS_INVITE_CODE",
            )

        circle = CircleDocument.from_mongo(docs[0])
        if is_purge_eligible(circle.deleteAt, circle.cleanedUp, datetime.now(timezone.utc)):
            raise NotFoundException(message="Invalid invite code", code="INVITE_CODE_NOT_FOUND")
        return circle

    # ─────────────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────────────

    async def join_by_invite_code(self, code: str, uid: str) -> CircleDocument:
        """Join a circle by code. Joining twice is a no-op."""
        circle = await self.get_circle_by_invite_code(code)

        result = await self._circles_collection.update_one(
            {"_id": ObjectId(circle.id)},
            {"$addToSet": {"members": uid}},
        )
        if result.modified_count:
            logger.info(f"User {uid} joined circle {circle.id}")

        if uid not in circle.members:
            circle.members.append(uid)
        return circle

    async def add_member(
        self,
        circle_id: str,
        username_or_uid: str,
        requester_uid: str,
    ) -> UserDocument:
        """
        Owner adds a user by username or uid.

        Raises:
            NotFoundException: If the circle or user does not exist
            ForbiddenException: If requester is not the owner
            ConflictException: If the owner tries to add themselves
        """
        circle = await self.get_circle(circle_id)
        self._require_owner(circle, requester_uid)

        user = await self._user_service.resolve_user(username_or_uid)
        if not user:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        if user.uid == requester_uid:
            raise ConflictException(
                message="You are already in this circle",
                code="CANNOT_ADD_SELF",
            )

        await self.add_member_uid(circle.id, user.uid)
        return user

    async def add_member_uid(self, circle_id: str, uid: str) -> None:
        """Add a resolved uid to the member set."""
        result = await self._circles_collection.update_one(
            {"_id": ObjectId(circle_id)},
            {"$addToSet": {"members": uid}},
        )
        if result.modified_count:
            logger.info(f"User {uid} added to circle {circle_id}")

    async def kick_member(self, circle_id: str, member_uid: str, requester_uid: str) -> None:
        """
        Owner removes a member. Removing a non-member is a no-op.

        Raises:
            ForbiddenException: If requester is not the owner
            ConflictException: If the owner targets themselves
        """
        circle = await self.get_circle(circle_id)
        self._require_owner(circle, requester_uid)

        if member_uid == circle.ownerUid:
            raise ConflictException(
                message="The owner cannot leave the circle, delete it instead",
                code="OWNER_CANNOT_LEAVE",
            )

        await self._remove_member(circle.id, member_uid)

    async def leave(self, circle_id: str, uid: str) -> None:
        """
        Remove the caller from a circle.

        Raises:
            ConflictException: If the caller owns the circle
        """
        circle = await self.get_circle(circle_id)

        if uid == circle.ownerUid:
            raise ConflictException(
                message="The owner cannot leave the circle, delete it instead",
                code="OWNER_CANNOT_LEAVE",
            )

        await self._remove_member(circle.id, uid)

    async def _remove_member(self, circle_id: str, uid: str) -> None:
        result = await self._circles_collection.update_one(
            {"_id": ObjectId(circle_id)},
            {"$pull": {"members": uid}},
        )
        if result.modified_count:
            logger.info(f"User {uid} removed from circle {circle_id}")

    async def list_member_circles(self, uid: str) -> List[CircleDocument]:
        """Live circles the user belongs to, newest first."""
        cursor = self._circles_collection.find({"members": uid, "cleanedUp": False})
        cursor = cursor.sort("createdAt", -1)
        docs = await cursor.to_list(length=None)
        return [CircleDocument.from_mongo(doc) for doc in docs]

    async def list_members(self, circle_id: str, requester_uid: str) -> List[UserDocument]:
        """Profiles of a circle's members, visible to members only."""
        circle = await self.get_circle_for_member(circle_id, requester_uid)
        return await self._user_service.get_users(circle.members)

    # ─────────────────────────────────────────────────────────────────
    # Owner settings
    # ─────────────────────────────────────────────────────────────────

    async def rename(self, circle_id: str, requester_uid: str, name: str) -> CircleDocument:
        """Rename a circle (owner only)."""
        circle = await self.get_circle(circle_id)
        self._require_owner(circle, requester_uid)

        name = name.strip()
        if not name:
            raise ValidationException(message="Circle name is required", code="INVALID_NAME")

        await self._circles_collection.update_one(
            {"_id": ObjectId(circle.id)},
            {"$set": {"name": name}},
        )
        circle.name = name
        return circle

    async def update_background(
        self,
        circle_id: str,
        requester_uid: str,
        image_bytes: bytes,
        content_type: str = "image/jpeg",
    ) -> CircleDocument:
        """
        Replace the circle's background image (owner only).

        The image lives under the circle's storage prefix so it is purged
        with the photos.
        """
        circle = await self.get_circle(circle_id)
        self._require_owner(circle, requester_uid)

        path = f"{circle_storage_prefix(circle.id)}background.jpg"
        await self._blob_store.upload_bytes(path, image_bytes, content_type=content_type)

        await self._circles_collection.update_one(
            {"_id": ObjectId(circle.id)},
            {"$set": {"backgroundPath": path}},
        )
        circle.backgroundPath = path

        logger.info(f"Background updated for circle {circle.id}")
        return circle

    async def delete_circle(self, circle_id: str, requester_uid: str) -> PurgeResult:
        """
        Delete a circle now (owner only).

        Reaches the same end state as scheduled cleanup: no blobs, no photo
        records. The circle document itself is removed.
        """
        circle = await self.get_circle(circle_id)
        self._require_owner(circle, requester_uid)

        result = await self._purger.delete_entirely(circle.id)
        logger.info(
            f"Circle {circle.id} deleted by owner: {result.blobs_deleted} blobs, "
            f"{result.photos_deleted} photo records"
        )
        return result

    @staticmethod
    def _require_owner(circle: CircleDocument, uid: Optional[str]) -> None:
        if circle.ownerUid != uid:
            raise ForbiddenException(
                message="Only the circle owner can do this",
                code="NOT_CIRCLE_OWNER",
            )
