"""Friend services."""

from crcle.services.friends.friend_service import FriendService

__all__ = ["FriendService"]
