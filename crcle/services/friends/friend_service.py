"""
Friend request state machine and block list.

A request is created pending and is deleted when accepted, declined or
cancelled; acceptance swaps it for two friendship edges. A partial unique
index on ``pairKey`` keeps at most one pending request per unordered pair.
"""

import logging
from datetime import datetime, timezone
from typing import List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from common.database import start_transaction
from common.utils.exceptions import ConflictException, NotFoundException
from crcle.database.collections import FRIEND_REQUESTS, USERS
from crcle.schemas.friends import FriendRequestDocument, FriendRequestStatus, pair_key
from crcle.schemas.users import UserDocument
from crcle.services.users.user_service import UserService

logger = logging.getLogger(__name__)


def _user_not_found() -> NotFoundException:
    # Also used when the receiver blocked the sender, so block status never leaks
    return NotFoundException(message="User not found", code="USER_NOT_FOUND")


class FriendService:
    """
    Friend requests, friendships and blocking.
    """

    def __init__(self, db: AsyncIOMotorDatabase, user_service: UserService):
        """
        Initialize FriendService.

        Args:
            db: MongoDB database connection
            user_service: User directory
        """
        self._db = db
        self._requests_collection = db[FRIEND_REQUESTS]
        self._users_collection = db[USERS]
        self._user_service = user_service

    # ─────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────

    async def send_request(self, sender_uid: str, username: str) -> FriendRequestDocument:
        """
        Send a friend request by username.

        Raises:
            NotFoundException: If no such user, or the receiver blocked the sender
            ConflictException: Self request, already friends, sender blocked
                the receiver, or a request is already pending
        """
        receiver = await self._user_service.get_by_username(username)
        if not receiver:
            raise _user_not_found()

        if receiver.uid == sender_uid:
            raise ConflictException(message="You cannot add yourself", code="CANNOT_FRIEND_SELF")

        sender = await self._user_service.get_user(sender_uid)

        if receiver.uid in sender.friends:
            raise ConflictException(message="Already friends", code="ALREADY_FRIENDS")
        if receiver.uid in sender.blockedUsers:
            raise ConflictException(message="You have blocked this user", code="USER_BLOCKED")
        if sender_uid in receiver.blockedUsers:
            raise _user_not_found()

        key = pair_key(sender_uid, receiver.uid)
        existing = await self._requests_collection.find_one(
            {"pairKey": key, "status": FriendRequestStatus.PENDING.value}
        )
        if existing:
            raise ConflictException(
                message="A friend request is already pending",
                code="REQUEST_ALREADY_PENDING",
            )

        request_doc = {
            "senderUid": sender_uid,
            "receiverUid": receiver.uid,
            "status": FriendRequestStatus.PENDING.value,
            "timestamp": datetime.now(timezone.utc),
            "pairKey": key,
        }
        try:
            result = await self._requests_collection.insert_one(request_doc)
        except DuplicateKeyError:
            raise ConflictException(
                message="A friend request is already pending",
                code="REQUEST_ALREADY_PENDING",
            )
        request_doc["_id"] = result.inserted_id

        logger.info(f"Friend request {result.inserted_id}: {sender_uid} -> {receiver.uid}")
        return FriendRequestDocument.from_mongo(request_doc)

    async def _get_pending(self, request_id: str, **owner_filter: str) -> FriendRequestDocument:
        if not ObjectId.is_valid(request_id):
            raise NotFoundException(message="Friend request not found", code="REQUEST_NOT_FOUND")

        doc = await self._requests_collection.find_one({
            "_id": ObjectId(request_id),
            "status": FriendRequestStatus.PENDING.value,
            **owner_filter,
        })
        if not doc:
            raise NotFoundException(message="Friend request not found", code="REQUEST_NOT_FOUND")
        return FriendRequestDocument.from_mongo(doc)

    async def accept_request(self, request_id: str, uid: str) -> None:
        """Accept a request addressed to uid: delete it and befriend both sides."""
        request = await self._get_pending(request_id, receiverUid=uid)

        async with start_transaction(self._db) as session:
            # A block, cancel or decline may have removed it since the read
            deleted = await self._requests_collection.delete_one(
                {"_id": ObjectId(request.id), "status": FriendRequestStatus.PENDING.value},
                session=session,
            )
            if deleted.deleted_count == 0:
                raise NotFoundException(message="Friend request not found", code="REQUEST_NOT_FOUND")
            await self._users_collection.update_one(
                {"_id": request.senderUid},
                {"$addToSet": {"friends": request.receiverUid}},
                session=session,
            )
            await self._users_collection.update_one(
                {"_id": request.receiverUid},
                {"$addToSet": {"friends": request.senderUid}},
                session=session,
            )

        logger.info(f"Friend request {request.id} accepted")

    async def decline_request(self, request_id: str, uid: str) -> None:
        """Receiver declines; the request is deleted."""
        request = await self._get_pending(request_id, receiverUid=uid)
        await self._requests_collection.delete_one({"_id": ObjectId(request.id)})
        logger.info(f"Friend request {request.id} declined")

    async def cancel_request(self, request_id: str, uid: str) -> None:
        """Sender withdraws; the request is deleted."""
        request = await self._get_pending(request_id, senderUid=uid)
        await self._requests_collection.delete_one({"_id": ObjectId(request.id)})
        logger.info(f"Friend request {request.id} cancelled")

    async def list_incoming(self, uid: str) -> List[FriendRequestDocument]:
        cursor = self._requests_collection.find(
            {"receiverUid": uid, "status": FriendRequestStatus.PENDING.value}
        )
        docs = await cursor.to_list(length=None)
        return [FriendRequestDocument.from_mongo(doc) for doc in docs]

    async def list_outgoing(self, uid: str) -> List[FriendRequestDocument]:
        cursor = self._requests_collection.find(
            {"senderUid": uid, "status": FriendRequestStatus.PENDING.value}
        )
        docs = await cursor.to_list(length=None)
        return [FriendRequestDocument.from_mongo(doc) for doc in docs]

    # ─────────────────────────────────────────────────────────────────
    # Friendships and blocks
    # ─────────────────────────────────────────────────────────────────

    async def remove_friend(self, uid: str, friend_uid: str) -> None:
        """Remove the friendship on both sides atomically."""
        async with start_transaction(self._db) as session:
            await self._users_collection.update_one(
                {"_id": uid}, {"$pull": {"friends": friend_uid}}, session=session
            )
            await self._users_collection.update_one(
                {"_id": friend_uid}, {"$pull": {"friends": uid}}, session=session
            )

        logger.info(f"Friendship removed: {uid} <-> {friend_uid}")

    async def block_user(self, uid: str, target_uid: str) -> None:
        """
        Block a user.

        In one transaction: add to the blocker's block list, drop the
        friendship on both sides and delete every request between the pair
        in either direction.

        Raises:
            ConflictException: If blocking self or already blocked
            NotFoundException: If the target does not exist
        """
        if target_uid == uid:
            raise ConflictException(message="You cannot block yourself", code="CANNOT_BLOCK_SELF")

        blocker = await self._user_service.get_user(uid)
        if target_uid in blocker.blockedUsers:
            raise ConflictException(message="User is already blocked", code="ALREADY_BLOCKED")

        target = await self._user_service.find_user(target_uid)
        if not target:
            raise _user_not_found()

        async with start_transaction(self._db) as session:
            await self._users_collection.update_one(
                {"_id": uid},
                {
                    "$addToSet": {"blockedUsers": target_uid},
                    "$pull": {"friends": target_uid},
                },
                session=session,
            )
            await self._users_collection.update_one(
                {"_id": target_uid},
                {"$pull": {"friends": uid}},
                session=session,
            )
            await self._requests_collection.delete_many(
                {"pairKey": pair_key(uid, target_uid)},
                session=session,
            )

        logger.info(f"User {uid} blocked {target_uid}")

    async def unblock_user(self, uid: str, target_uid: str) -> None:
        """Remove a user from the block list. No-op if not blocked."""
        await self._users_collection.update_one(
            {"_id": uid}, {"$pull": {"blockedUsers": target_uid}}
        )
        logger.info(f"User {uid} unblocked {target_uid}")

    async def list_friends(self, uid: str) -> List[UserDocument]:
        user = await self._user_service.get_user(uid)
        return await self._user_service.get_users(user.friends)

    async def list_blocked(self, uid: str) -> List[UserDocument]:
        user = await self._user_service.get_user(uid)
        return await self._user_service.get_users(user.blockedUsers)
