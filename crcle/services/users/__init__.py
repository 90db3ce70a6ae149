"""User services."""

from crcle.services.users.user_service import UserService

__all__ = ["UserService"]
