"""
Storage module - Async blob storage on Google Cloud Storage.
"""

from common.storage.blob_store import (
    BlobStore,
    PrefixDeleteResult,
    StorageError,
    BlobNotFoundError,
    BlobTooLargeError,
)

__all__ = [
    "BlobStore",
    "PrefixDeleteResult",
    "StorageError",
    "BlobNotFoundError",
    "BlobTooLargeError",
]
