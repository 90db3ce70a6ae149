"""
Crcle-specific database utilities.
"""

from crcle.database.collections import (
    CIRCLES,
    CIRCLE_PHOTOS,
    CIRCLE_INVITES,
    USERS,
    FRIEND_REQUESTS,
    ensure_indexes,
)

__all__ = [
    "CIRCLES",
    "CIRCLE_PHOTOS",
    "CIRCLE_INVITES",
    "USERS",
    "FRIEND_REQUESTS",
    "ensure_indexes",
]
