"""
Client-side observed state for circles.

``CircleView`` keeps one circle, its photos and the viewer's block list in
sync with the database through full-snapshot watches. All snapshot events
go through a single reducer task, and every state transition is a
functional update on a ``StateContainer``, so there is no shared mutable
state between tasks.

Derived fields:
    - ``photos``: ``all_photos`` minus uploaders the viewer blocked,
      recomputed whenever either input changes
    - ``remaining_time`` / ``delete_in_time``: countdown strings refreshed
      by a one second ticker
    - ``download_url`` on each photo: resolved lazily in background tasks;
      results arriving after ``close()`` are dropped

After ``close()`` no task mutates the view's state any more.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from bson import ObjectId

from common.storage import StorageError
from crcle.client.auto_save import AutoSaveEngine, SaveOutcome
from crcle.client.snapshots import Snapshot, SnapshotError, SnapshotEvent, SnapshotSource, Subscription
from crcle.client.state import StateContainer
from crcle.database import CIRCLES, CIRCLE_PHOTOS, USERS
from crcle.schemas.circles import CircleDocument, PhotoDocument
from crcle.schemas.users import UserDocument
from crcle.services.circles.lifecycle import (
    LifecycleSnapshot,
    circle_lifecycle,
    format_countdown,
    utc_now_ms,
)

logger = logging.getLogger(__name__)

CIRCLE_TAG = "circle"
PHOTOS_TAG = "photos"
VIEWER_TAG = "viewer"
MEMBER_CIRCLES_TAG = "member_circles"

UrlResolver = Callable[[str], Awaitable[Optional[str]]]
PhotoDeleter = Callable[[str, str], Awaitable[None]]


@dataclass(frozen=True)
class PhotoItem:
    """A photo as displayed, with its lazily resolved URL."""
    id: str
    circle_id: str
    uploader_uid: str
    storage_path: str
    created_at: datetime
    download_url: Optional[str] = None

    @classmethod
    def from_document(cls, doc: PhotoDocument, download_url: Optional[str] = None) -> "PhotoItem":
        return cls(
            id=doc.id,
            circle_id=doc.circleId,
            uploader_uid=doc.uploaderUid,
            storage_path=doc.storagePath,
            created_at=doc.createdAt,
            download_url=download_url,
        )


@dataclass(frozen=True)
class CircleViewState:
    circle: Optional[CircleDocument] = None
    all_photos: Tuple[PhotoItem, ...] = ()
    photos: Tuple[PhotoItem, ...] = ()
    blocked_uids: FrozenSet[str] = frozenset()
    lifecycle: Optional[LifecycleSnapshot] = None
    remaining_time: str = ""
    delete_in_time: str = ""
    in_progress_saves: FrozenSet[str] = frozenset()
    in_selection_mode: bool = False
    selected_photos: FrozenSet[str] = frozenset()
    deleting_photos: FrozenSet[str] = frozenset()
    is_loading: bool = True
    error: Optional[str] = None


def visible_photos(all_photos: Tuple[PhotoItem, ...], blocked_uids: FrozenSet[str]) -> Tuple[PhotoItem, ...]:
    """Photos whose uploader the viewer has not blocked, order preserved."""
    return tuple(p for p in all_photos if p.uploader_uid not in blocked_uids)


def _with_photo_inputs(
    state: CircleViewState,
    all_photos: Tuple[PhotoItem, ...],
    blocked_uids: FrozenSet[str],
) -> CircleViewState:
    photos = visible_photos(all_photos, blocked_uids)
    visible_ids = {p.id for p in photos}
    selected = state.selected_photos & visible_ids
    return replace(
        state,
        all_photos=all_photos,
        blocked_uids=blocked_uids,
        photos=photos,
        selected_photos=selected,
        in_selection_mode=state.in_selection_mode and (bool(selected) or not state.selected_photos),
    )


def _with_url(state: CircleViewState, storage_path: str, url: str) -> CircleViewState:
    def _apply(items: Tuple[PhotoItem, ...]) -> Tuple[PhotoItem, ...]:
        return tuple(
            replace(p, download_url=url) if p.storage_path == storage_path and p.download_url != url else p
            for p in items
        )

    return replace(state, all_photos=_apply(state.all_photos), photos=_apply(state.photos))


class CircleView:
    """
    Live view of one circle for one viewer.

    Call ``start()`` from a running loop and ``close()`` when the screen
    goes away.
    """

    def __init__(
        self,
        circle_id: str,
        viewer_uid: str,
        source: SnapshotSource,
        url_resolver: UrlResolver,
        auto_save: Optional[AutoSaveEngine] = None,
        photo_deleter: Optional[PhotoDeleter] = None,
        clock: Callable[[], datetime] = utc_now_ms,
        tick_interval: float = 1.0,
    ):
        self.circle_id = circle_id
        self.viewer_uid = viewer_uid
        self.state: StateContainer[CircleViewState] = StateContainer(CircleViewState())

        self._source = source
        self._url_resolver = url_resolver
        self._auto_save = auto_save
        self._photo_deleter = photo_deleter
        self._clock = clock
        self._tick_interval = tick_interval

        self._queue: "asyncio.Queue[SnapshotEvent]" = asyncio.Queue()
        self._subscriptions: Dict[str, Subscription] = {}
        self._tasks: Set["asyncio.Task"] = set()
        self._url_cache: Dict[str, str] = {}
        self._resolving: Set[str] = set()
        self._reducer: Optional["asyncio.Task"] = None
        self._ticker: Optional["asyncio.Task"] = None
        self._viewer_loaded = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ─────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────

    def start(self) -> None:
        circle_oid = ObjectId(self.circle_id)
        self._subscriptions = {
            CIRCLE_TAG: self._source.watch_query(
                CIRCLE_TAG, CIRCLES, {"_id": circle_oid}, self._queue,
                parse=CircleDocument.from_mongo, limit=1,
            ),
            PHOTOS_TAG: self._source.watch_query(
                PHOTOS_TAG, CIRCLE_PHOTOS, {"circleId": circle_oid}, self._queue,
                sort=[("createdAt", 1)], parse=PhotoDocument.from_mongo,
            ),
            VIEWER_TAG: self._source.watch_query(
                VIEWER_TAG, USERS, {"_id": self.viewer_uid}, self._queue,
                parse=UserDocument.from_mongo, limit=1,
            ),
        }
        self._reducer = asyncio.create_task(self._reduce(), name=f"circle-view:{self.circle_id}")
        self._ticker = asyncio.create_task(self._tick(), name=f"circle-ticker:{self.circle_id}")

    def close(self) -> None:
        """Stop all watches and background work; later results are discarded."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions.values():
            subscription.cancel()
        for task in [self._reducer, self._ticker, *self._tasks]:
            if task is not None:
                task.cancel()

    async def settle(self) -> None:
        """Wait until queued snapshots and spawned background work are done."""
        while True:
            await self._queue.join()
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ─────────────────────────────────────────────────────────────────
    # Snapshot reducer
    # ─────────────────────────────────────────────────────────────────

    async def _reduce(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                subscription = self._subscriptions.get(event.tag)
                if self._closed or (subscription is not None and subscription.cancelled):
                    continue
                if isinstance(event, SnapshotError):
                    self._apply_error(event)
                elif event.tag == CIRCLE_TAG:
                    self._apply_circle(event)
                elif event.tag == PHOTOS_TAG:
                    self._apply_photos(event)
                elif event.tag == VIEWER_TAG:
                    self._apply_viewer(event)
            finally:
                self._queue.task_done()

    def _apply_error(self, event: SnapshotError) -> None:
        logger.warning(f"Circle {self.circle_id} {event.tag} watch failed: {event.error}")
        self.state.update(lambda s: replace(s, is_loading=False, error=str(event.error)))

    def _apply_circle(self, event: Snapshot) -> None:
        circle = event.items[0] if event.items else None
        if circle is not None and circle.cleanedUp:
            circle = None
        self.state.update(lambda s: replace(s, circle=circle, is_loading=False))
        self._refresh_clock()

    def _apply_photos(self, event: Snapshot) -> None:
        items = tuple(
            PhotoItem.from_document(doc, self._url_cache.get(doc.storagePath))
            for doc in event.items
        )
        state = self.state.update(lambda s: _with_photo_inputs(s, items, s.blocked_uids))

        for photo in items:
            if photo.download_url is None and photo.storage_path and photo.storage_path not in self._resolving:
                self._resolving.add(photo.storage_path)
                self._spawn(self._resolve_url(photo.storage_path))

        if self._viewer_loaded:
            self._spawn(self._auto_save_photos(state.photos))

    def _apply_viewer(self, event: Snapshot) -> None:
        viewer = event.items[0] if event.items else None
        blocked = frozenset(viewer.blockedUsers) if viewer else frozenset()
        state = self.state.update(lambda s: _with_photo_inputs(s, s.all_photos, blocked))

        if not self._viewer_loaded:
            self._viewer_loaded = True
            self._spawn(self._auto_save_photos(state.photos))

    # ─────────────────────────────────────────────────────────────────
    # Background work
    # ─────────────────────────────────────────────────────────────────

    async def _resolve_url(self, storage_path: str) -> None:
        try:
            url = await self._url_resolver(storage_path)
        except StorageError as e:
            logger.warning(f"Could not resolve URL for {storage_path}: {e}")
            url = None
        finally:
            self._resolving.discard(storage_path)

        if self._closed or url is None:
            return
        self._url_cache[storage_path] = url
        self.state.update(lambda s: _with_url(s, storage_path, url))

    async def _auto_save_photos(self, photos: Tuple[PhotoItem, ...]) -> None:
        if self._auto_save is None or not photos:
            return
        if not await self._auto_save.preferences.auto_save_enabled():
            return
        if self._closed:
            return
        await self._auto_save.ensure_saved_all(
            self.circle_id,
            [(p.id, p.storage_path) for p in photos],
            on_progress=self._on_save_progress,
        )

    def _on_save_progress(self, photo_id: str, active: bool) -> None:
        if self._closed:
            return
        if active:
            self.state.update(lambda s: replace(s, in_progress_saves=s.in_progress_saves | {photo_id}))
        else:
            self.state.update(lambda s: replace(s, in_progress_saves=s.in_progress_saves - {photo_id}))

    async def _tick(self) -> None:
        while not self._closed:
            self._refresh_clock()
            await asyncio.sleep(self._tick_interval)

    def _refresh_clock(self) -> None:
        if self._closed:
            return
        circle = self.state.value.circle
        if circle is None:
            self.state.update(lambda s: replace(s, lifecycle=None, remaining_time="", delete_in_time=""))
            return

        now = self._clock()
        lifecycle = circle_lifecycle(circle, now)
        remaining = format_countdown(circle.closeAt, now) if lifecycle.is_open else ""
        delete_in = format_countdown(circle.deleteAt, now)
        self.state.update(
            lambda s: replace(s, lifecycle=lifecycle, remaining_time=remaining, delete_in_time=delete_in)
        )

    # ─────────────────────────────────────────────────────────────────
    # Selection
    # ─────────────────────────────────────────────────────────────────

    def toggle_selection_mode(self) -> None:
        """Enter selection mode, or leave it and clear the selection."""
        self.state.update(
            lambda s: replace(s, in_selection_mode=not s.in_selection_mode, selected_photos=frozenset())
        )

    def toggle_photo_selection(self, photo_id: str) -> None:
        """Toggle one photo; an empty selection leaves selection mode."""
        def _toggle(s: CircleViewState) -> CircleViewState:
            selected = s.selected_photos ^ {photo_id}
            return replace(s, selected_photos=selected, in_selection_mode=bool(selected))

        self.state.update(_toggle)

    def clear_error(self) -> None:
        self.state.update(lambda s: replace(s, error=None))

    async def save_selected(self) -> Dict[str, SaveOutcome]:
        """Save every selected photo to the gallery, then leave selection mode."""
        if self._auto_save is None:
            raise RuntimeError("No auto-save engine configured for this view.")

        state = self.state.value
        selected = [p for p in state.photos if p.id in state.selected_photos]
        outcomes: Dict[str, SaveOutcome] = {}
        for photo in selected:
            outcomes[photo.id] = await self._auto_save.ensure_saved(
                self.circle_id, photo.id, photo.storage_path,
                force=True, on_progress=self._on_save_progress,
            )

        failed = [pid for pid, outcome in outcomes.items() if outcome == SaveOutcome.FAILED]
        if not self._closed:
            self.state.update(
                lambda s: replace(
                    s,
                    in_selection_mode=False,
                    selected_photos=frozenset(),
                    error=f"Failed to save {len(failed)} photo(s)" if failed else s.error,
                )
            )
        return outcomes

    async def delete_photo(self, photo_id: str) -> bool:
        """Delete one photo through the configured deleter; errors land in state."""
        if self._photo_deleter is None:
            raise RuntimeError("No photo deleter configured for this view.")

        self.state.update(lambda s: replace(s, deleting_photos=s.deleting_photos | {photo_id}))
        try:
            await self._photo_deleter(self.circle_id, photo_id)
            return True
        except Exception as e:
            logger.warning(f"Failed to delete photo {photo_id} of circle {self.circle_id}: {e}")
            if not self._closed:
                self.state.update(lambda s: replace(s, error=f"Failed to delete photo: {e}"))
            return False
        finally:
            if not self._closed:
                self.state.update(lambda s: replace(s, deleting_photos=s.deleting_photos - {photo_id}))

    async def delete_selected(self) -> List[str]:
        """Delete every selected photo, then leave selection mode. Returns deleted IDs."""
        selected = sorted(self.state.value.selected_photos)
        deleted = [pid for pid in selected if await self.delete_photo(pid)]
        if not self._closed:
            self.state.update(lambda s: replace(s, in_selection_mode=False, selected_photos=frozenset()))
        return deleted


@dataclass(frozen=True)
class MemberCirclesState:
    circles: Tuple[CircleDocument, ...] = ()
    is_loading: bool = True
    error: Optional[str] = None


class MemberCirclesView:
    """Live list of the circles a user belongs to, newest first."""

    def __init__(self, uid: str, source: SnapshotSource):
        self.uid = uid
        self.state: StateContainer[MemberCirclesState] = StateContainer(MemberCirclesState())
        self._source = source
        self._queue: "asyncio.Queue[SnapshotEvent]" = asyncio.Queue()
        self._subscription: Optional[Subscription] = None
        self._reducer: Optional["asyncio.Task"] = None
        self._closed = False

    def start(self) -> None:
        self._subscription = self._source.watch_query(
            MEMBER_CIRCLES_TAG, CIRCLES, {"members": self.uid, "cleanedUp": False}, self._queue,
            sort=[("createdAt", -1)], parse=CircleDocument.from_mongo,
        )
        self._reducer = asyncio.create_task(self._reduce(), name=f"member-circles:{self.uid}")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.cancel()
        if self._reducer is not None:
            self._reducer.cancel()

    async def settle(self) -> None:
        await self._queue.join()

    async def _reduce(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if self._closed:
                    continue
                if isinstance(event, SnapshotError):
                    self.state.update(lambda s: replace(s, is_loading=False, error=str(event.error)))
                else:
                    circles = tuple(event.items)
                    self.state.update(lambda s: replace(s, circles=circles, is_loading=False, error=None))
            finally:
                self._queue.task_done()
