"""
Async MongoDB connection using Motor.

Collections are accessed directly from the ``AsyncIOMotorDatabase``;
document validation happens in the schema layer. The client is created
timezone-aware, so every datetime read back is UTC-aware and can be
compared against ``datetime.now(timezone.utc)`` without conversion.

Example:
    db = MongoDB()
    await db.connect(uri="mongodb://localhost:27017", database_name="crcle")
    circles = db.db["circles"]

Transactions (replica set required):
    async with start_transaction(db.db) as session:
        await db.db["circlephotos"].delete_many({...}, session=session)
        await db.db["circles"].update_one({...}, {...}, session=session)
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


class MongoDB:
    """Owns the Motor client for one database."""

    def __init__(self):
        self._client: Optional[AsyncIOMotorClient] = None
        self._database_name: Optional[str] = None

    async def connect(
        self,
        uri: str,
        database_name: str,
        timeout_ms: int = 10000,
    ) -> None:
        """
        Connect and verify the server answers a ping.

        Args:
            uri: MongoDB connection string
            database_name: Name of the database to use
            timeout_ms: Server selection, connect and socket timeout; a store
                that stops answering fails the call instead of hanging it
        """
        # Hide credentials
        masked_uri = uri.split("@")[-1] if "@" in uri else uri
        logger.info(f"Connecting to MongoDB: {masked_uri}")

        self._client = AsyncIOMotorClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
            retryWrites=True,
            retryReads=True,
            tz_aware=True,
        )
        self._database_name = database_name
        try:
            await self._client.admin.command("ping")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            self._client.close()
            self._client = None
            raise
        logger.info(f"Connected to MongoDB database: {database_name}")

    async def disconnect(self) -> None:
        if self._client:
            logger.info(f"Disconnecting from MongoDB database: {self._database_name}")
            self._client.close()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if not self._client or not self._database_name:
            raise RuntimeError("Database not connected")
        return self._client[self._database_name]


@asynccontextmanager
async def start_transaction(db: AsyncIOMotorDatabase):
    """
    Run the enclosed writes as one atomic multi-document transaction.

    Yields the session; every write inside the block must pass
    ``session=session``. The transaction commits when the block exits
    normally and aborts if it raises.
    """
    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session
