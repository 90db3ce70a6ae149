"""
Crcle collection names and index setup.

Services receive the Motor database and index it with these names;
``ensure_indexes`` is run once at startup.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel

logger = logging.getLogger(__name__)

CIRCLES = "circles"
CIRCLE_PHOTOS = "circlephotos"
CIRCLE_INVITES = "circleinvites"
USERS = "users"
FRIEND_REQUESTS = "friendrequests"


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the services rely on. Safe to run repeatedly."""
    await db[CIRCLES].create_indexes([
        IndexModel([("inviteCode", ASCENDING)]),
        IndexModel([("members", ASCENDING)]),
        IndexModel([("cleanedUp", ASCENDING), ("deleteAt", ASCENDING)]),
    ])
    await db[CIRCLE_PHOTOS].create_indexes([
        IndexModel([("circleId", ASCENDING), ("createdAt", ASCENDING)]),
    ])
    await db[CIRCLE_INVITES].create_indexes([
        IndexModel([("inviteeUid", ASCENDING)]),
        IndexModel([("circleId", ASCENDING), ("inviteeUid", ASCENDING)], unique=True),
    ])
    await db[USERS].create_indexes([
        IndexModel(
            [("username", ASCENDING)],
            unique=True,
            partialFilterExpression={"username": {"$type": "string"}},
        ),
        IndexModel([("friends", ASCENDING)]),
    ])
    # At most one pending request per unordered pair
    await db[FRIEND_REQUESTS].create_indexes([
        IndexModel(
            [("pairKey", ASCENDING)],
            unique=True,
            partialFilterExpression={"status": "pending"},
        ),
        IndexModel([("receiverUid", ASCENDING), ("status", ASCENDING)]),
        IndexModel([("senderUid", ASCENDING), ("status", ASCENDING)]),
    ])
    logger.info("Crcle indexes ensured")
