"""
Client sync engine: live circle views, local preferences and gallery auto-save.
"""

from crcle.client.auto_save import AutoSaveEngine, InFlightGuard, SaveOutcome, create_auto_save_engine
from crcle.client.circle_store import (
    CircleView,
    CircleViewState,
    MemberCirclesView,
    MemberCirclesState,
    PhotoItem,
    visible_photos,
)
from crcle.client.gallery import GallerySaver, gallery_display_name
from crcle.client.preferences import LocalPreferences, saved_photo_key
from crcle.client.snapshots import Snapshot, SnapshotError, SnapshotSource, Subscription
from crcle.client.state import StateContainer

__all__ = [
    "AutoSaveEngine",
    "InFlightGuard",
    "SaveOutcome",
    "create_auto_save_engine",
    "CircleView",
    "CircleViewState",
    "MemberCirclesView",
    "MemberCirclesState",
    "PhotoItem",
    "visible_photos",
    "GallerySaver",
    "gallery_display_name",
    "LocalPreferences",
    "saved_photo_key",
    "Snapshot",
    "SnapshotError",
    "SnapshotSource",
    "Subscription",
    "StateContainer",
]
