"""
Circle invitation service.

Members invite other users by username. Friends of the inviter and users
who opted into auto-accept are added straight away; everyone else gets a
pending invite to accept or decline. Accepted and declined invites are
deleted, not archived.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from common.utils.exceptions import ConflictException, NotFoundException
from crcle.database.collections import CIRCLE_INVITES
from crcle.schemas.circles import CircleInviteDocument
from crcle.services.circles.circle_service import CircleService
from crcle.services.circles.lifecycle import is_purge_eligible
from crcle.services.users.user_service import UserService

logger = logging.getLogger(__name__)


class InviteService:
    """
    Manages direct circle invitations.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        circle_service: CircleService,
        user_service: UserService,
    ):
        """
        Initialize InviteService.

        Args:
            db: MongoDB database connection
            circle_service: Membership mutations
            user_service: Username lookup and friend lists
        """
        self._db = db
        self._invites_collection = db[CIRCLE_INVITES]
        self._circle_service = circle_service
        self._user_service = user_service

    async def send_invite(self, circle_id: str, inviter_uid: str, username: str) -> Dict[str, Any]:
        """
        Invite a user into a circle.

        Args:
            circle_id: Circle to invite into
            inviter_uid: Member sending the invite
            username: Target's username

        Returns:
            dict with status ("added" or "invited"), the target profile and,
            for pending invites, the invite id

        Raises:
            NotFoundException: If the circle or user does not exist, or the
                target has blocked the inviter
            ForbiddenException: If the inviter is not a member
            ConflictException: If the target is the inviter or already a member
        """
        circle = await self._circle_service.get_circle_for_member(circle_id, inviter_uid)

        target = await self._user_service.get_by_username(username)
        if not target or inviter_uid in target.blockedUsers:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        if target.uid == inviter_uid:
            raise ConflictException(message="You are already in this circle", code="CANNOT_ADD_SELF")
        if circle.is_member(target.uid):
            raise ConflictException(message="User is already a member", code="ALREADY_MEMBER")

        inviter = await self._user_service.get_user(inviter_uid)

        if target.uid in inviter.friends or target.autoAcceptInvites:
            await self._circle_service.add_member_uid(circle.id, target.uid)
            return {"status": "added", "user": target.to_profile()}

        now = datetime.now(timezone.utc)
        doc = await self._invites_collection.find_one_and_update(
            {"circleId": ObjectId(circle.id), "inviteeUid": target.uid},
            {
                "$setOnInsert": {
                    "circleName": circle.name,
                    "inviterUid": inviter_uid,
                    "createdAt": now,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

        logger.info(f"Circle invite {doc['_id']} sent to {target.uid} for circle {circle.id}")
        return {
            "status": "invited",
            "inviteId": str(doc["_id"]),
            "user": target.to_profile(),
        }

    async def list_pending_invites(self, uid: str) -> List[CircleInviteDocument]:
        """Pending invites addressed to the user, newest first."""
        cursor = self._invites_collection.find({"inviteeUid": uid})
        cursor = cursor.sort("createdAt", -1)
        docs = await cursor.to_list(length=None)
        return [CircleInviteDocument.from_mongo(doc) for doc in docs]

    async def _get_invite_for(self, invite_id: str, uid: str) -> CircleInviteDocument:
        if not ObjectId.is_valid(invite_id):
            raise NotFoundException(message="Invite not found", code="INVITE_NOT_FOUND")

        doc = await self._invites_collection.find_one(
            {"_id": ObjectId(invite_id), "inviteeUid": uid}
        )
        if not doc:
            raise NotFoundException(message="Invite not found", code="INVITE_NOT_FOUND")
        return CircleInviteDocument.from_mongo(doc)

    async def accept_invite(self, invite_id: str, uid: str) -> str:
        """
        Accept an invite: join the circle, then drop the invite.

        Both steps are idempotent, so a retry after a partial failure
        converges.

        Returns:
            The joined circle's id
        """
        invite = await self._get_invite_for(invite_id, uid)

        try:
            circle = await self._circle_service.get_circle(invite.circleId)
            if is_purge_eligible(circle.deleteAt, circle.cleanedUp, datetime.now(timezone.utc)):
                raise NotFoundException(message="Circle not found", code="CIRCLE_NOT_FOUND")
        except NotFoundException:
            await self._invites_collection.delete_one({"_id": ObjectId(invite.id)})
            raise

        await self._circle_service.add_member_uid(circle.id, uid)
        await self._invites_collection.delete_one({"_id": ObjectId(invite.id)})

        logger.info(f"Circle invite {invite.id} accepted by {uid}")
        return circle.id

    async def decline_invite(self, invite_id: str, uid: str) -> None:
        """Decline an invite by deleting it."""
        invite = await self._get_invite_for(invite_id, uid)
        await self._invites_collection.delete_one({"_id": ObjectId(invite.id)})
        logger.info(f"Circle invite {invite.id} declined by {uid}")
