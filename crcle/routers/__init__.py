"""
Crcle API Routers.

All routers are imported here for easy access.
"""

from crcle.routers.circles import router as circles_router
from crcle.routers.photos import router as photos_router
from crcle.routers.friends import router as friends_router
from crcle.routers.users import router as users_router

__all__ = [
    "circles_router",
    "photos_router",
    "friends_router",
    "users_router",
]
