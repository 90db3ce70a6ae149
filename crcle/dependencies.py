"""
FastAPI dependencies for the Crcle application.

Provides dependency injection for all services.
"""

from typing import Annotated, Any, Dict, Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import AuthProvider, create_auth_dependency
from common.storage import BlobStore
from config import Settings
from crcle.schemas.users import UserDocument
from crcle.services.users.user_service import UserService
from crcle.services.circles.purge import CirclePurger
from crcle.services.circles.circle_service import CircleService
from crcle.services.circles.photo_service import PhotoService
from crcle.services.circles.invite_service import InviteService
from crcle.services.friends.friend_service import FriendService


# ─────────────────────────────────────────────────────────────────
# Global service instances
# ─────────────────────────────────────────────────────────────────

# Infrastructure
_auth_provider: Optional[AuthProvider] = None

# User
_user_service: Optional[UserService] = None

# Circles
_circle_service: Optional[CircleService] = None
_photo_service: Optional[PhotoService] = None
_invite_service: Optional[InviteService] = None

# Friends
_friend_service: Optional[FriendService] = None


# ─────────────────────────────────────────────────────────────────
# Initialization functions
# ─────────────────────────────────────────────────────────────────

def init_circle_services(db: AsyncIOMotorDatabase, blob_store: BlobStore, settings: Settings) -> None:
    """Initialize circle, photo and invite services."""
    global _circle_service, _photo_service, _invite_service

    purger = CirclePurger(db=db, blob_store=blob_store)
    _circle_service = CircleService(
        db=db,
        user_service=_user_service,
        purger=purger,
        blob_store=blob_store,
        delete_grace_hours=settings.CIRCLE_DELETE_GRACE_HOURS,
        min_duration_days=settings.CIRCLE_MIN_DURATION_DAYS,
        max_duration_days=settings.CIRCLE_MAX_DURATION_DAYS,
    )
    _photo_service = PhotoService(
        db=db,
        blob_store=blob_store,
        circle_service=_circle_service,
        user_service=_user_service,
        max_photo_bytes=settings.MAX_PHOTO_BYTES,
    )
    _invite_service = InviteService(
        db=db,
        circle_service=_circle_service,
        user_service=_user_service,
    )


def init_all_services(
    db: AsyncIOMotorDatabase,
    blob_store: BlobStore,
    auth_provider: AuthProvider,
    settings: Settings,
) -> None:
    """
    Initialize all services at application startup.

    Args:
        db: Main MongoDB database connection
        blob_store: Photo blob storage
        auth_provider: Token verifier (Firebase in production)
        settings: Application settings
    """
    global _auth_provider, _user_service, _friend_service

    _auth_provider = auth_provider

    _user_service = UserService(db=db)
    init_circle_services(db, blob_store, settings)
    _friend_service = FriendService(db=db, user_service=_user_service)


# ─────────────────────────────────────────────────────────────────
# Auth
# ─────────────────────────────────────────────────────────────────

def get_auth_provider() -> AuthProvider:
    """Get the token verifier."""
    if _auth_provider is None:
        raise RuntimeError("Auth services not initialized.")
    return _auth_provider


get_current_claims = create_auth_dependency(get_auth_provider)


async def require_auth(
    claims: Annotated[Dict[str, Any], Depends(get_current_claims)],
) -> UserDocument:
    """Dependency that requires authentication and provisions the profile."""
    return await get_user_service().ensure_user(claims["uid"], claims)


# ─────────────────────────────────────────────────────────────────
# Getters
# ─────────────────────────────────────────────────────────────────

def get_user_service() -> UserService:
    """Get user service instance."""
    if _user_service is None:
        raise RuntimeError("User services not initialized.")
    return _user_service


def get_circle_service() -> CircleService:
    """Get circle service instance."""
    if _circle_service is None:
        raise RuntimeError("Circle services not initialized.")
    return _circle_service


def get_photo_service() -> PhotoService:
    """Get photo service instance."""
    if _photo_service is None:
        raise RuntimeError("Circle services not initialized.")
    return _photo_service


def get_invite_service() -> InviteService:
    """Get invite service instance."""
    if _invite_service is None:
        raise RuntimeError("Circle services not initialized.")
    return _invite_service


def get_friend_service() -> FriendService:
    """Get friend service instance."""
    if _friend_service is None:
        raise RuntimeError("Friend services not initialized.")
    return _friend_service
