"""
Common library for reusable infrastructure components.

This package provides generic modules that can be used across projects:

- database: Async MongoDB connection with Motor, transaction helper
- auth: Token verification against an external identity provider (Firebase)
- storage: Async blob storage on Google Cloud Storage
- utils: Standard responses and exceptions
- config: Base settings class
"""

from common.database import MongoDB, start_transaction
from common.auth import AuthProvider, FirebaseAuth, create_auth_dependency
from common.storage import BlobStore, StorageError, BlobTooLargeError
from common.utils import (
    success_response,
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    ValidationException,
    TransientIOException,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    "start_transaction",
    # Auth
    "AuthProvider",
    "FirebaseAuth",
    "create_auth_dependency",
    # Storage
    "BlobStore",
    "StorageError",
    "BlobTooLargeError",
    # Utils
    "success_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "ValidationException",
    "TransientIOException",
    # Config
    "BaseAppSettings",
]
