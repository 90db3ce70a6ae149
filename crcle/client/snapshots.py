"""
Full-snapshot query subscriptions over MongoDB change streams.

A watch delivers the complete current result set of a query once when it
starts and again after every change to the watched collection. Consumers
replace their local state with each delivery; there is no diffing, so they
must tolerate receiving the same result set repeatedly.

Events are tagged and pushed onto a caller-owned asyncio.Queue so several
watches can feed one single-task reducer:

    queue = asyncio.Queue()
    photos = source.watch_query("photos", CIRCLE_PHOTOS, {"circleId": oid},
                                queue=queue, sort=[("createdAt", 1)])
    event = await queue.get()   # Snapshot(tag="photos", items=[...])
    photos.cancel()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Complete result set of one watched query."""
    tag: str
    items: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class SnapshotError:
    """The watch failed and has stopped delivering."""
    tag: str
    error: Exception


SnapshotEvent = Union[Snapshot, SnapshotError]


class Subscription:
    """
    Handle for one running watch.

    ``cancel()`` is synchronous. A snapshot already queued, or one being
    delivered while cancel runs, can still reach the consumer; check
    ``cancelled`` before applying an event.
    """

    def __init__(self, tag: str, task: "asyncio.Task[None]"):
        self.tag = tag
        self._task = task
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()


class SnapshotSource:
    """Starts full-snapshot watches against a Motor database."""

    def __init__(self, db: AsyncIOMotorDatabase, query_timeout_ms: int = 10000):
        self._db = db
        self._query_timeout_ms = query_timeout_ms

    def watch_query(
        self,
        tag: str,
        collection_name: str,
        query: Dict[str, Any],
        queue: "asyncio.Queue[SnapshotEvent]",
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        parse: Optional[Callable[[Dict[str, Any]], Any]] = None,
        limit: int = 0,
    ) -> Subscription:
        """
        Start watching a query. Must be called from a running event loop.

        Args:
            tag: Label carried by every event from this watch
            collection_name: Collection to query and watch
            query: Mongo filter
            queue: Destination for Snapshot/SnapshotError events
            sort: Optional sort specification
            parse: Converts each raw document (e.g. ``Model.from_mongo``)
            limit: Maximum result size, 0 for no limit

        Returns:
            Subscription
        """
        task = asyncio.create_task(
            self._run(tag, collection_name, query, queue, sort, parse, limit),
            name=f"snapshot-watch:{tag}",
        )
        return Subscription(tag, task)

    async def _fetch(
        self,
        collection_name: str,
        query: Dict[str, Any],
        sort: Optional[Sequence[Tuple[str, int]]],
        parse: Optional[Callable[[Dict[str, Any]], Any]],
        limit: int,
    ) -> List[Any]:
        cursor = self._db[collection_name].find(query, max_time_ms=self._query_timeout_ms)
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=None)
        if not parse:
            return docs

        items = []
        for doc in docs:
            try:
                items.append(parse(doc))
            except ValidationError as e:
                # One malformed document must not stall the whole result set
                logger.error(f"Skipping unreadable {collection_name} document {doc.get('_id')}: {e}")
        return items

    async def _run(
        self,
        tag: str,
        collection_name: str,
        query: Dict[str, Any],
        queue: "asyncio.Queue[SnapshotEvent]",
        sort: Optional[Sequence[Tuple[str, int]]],
        parse: Optional[Callable[[Dict[str, Any]], Any]],
        limit: int,
    ) -> None:
        try:
            # Open the stream before the first read so no change falls in between
            async with self._db[collection_name].watch() as stream:
                queue.put_nowait(Snapshot(tag, await self._fetch(collection_name, query, sort, parse, limit)))
                async for _change in stream:
                    queue.put_nowait(Snapshot(tag, await self._fetch(collection_name, query, sort, parse, limit)))
        except PyMongoError as e:
            logger.warning(f"Snapshot watch {tag} stopped: {e}")
            queue.put_nowait(SnapshotError(tag, e))
