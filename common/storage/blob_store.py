"""
Blob storage on Google Cloud Storage.

Wraps a single bucket behind an async interface. The google-cloud-storage
client is synchronous, so every call runs in a worker thread and is bounded
by an explicit timeout.

Example:
    store = BlobStore.from_bucket_name("crcle-photos", project_id="crcle-prod")

    await store.upload_bytes("circles/abc/123.jpg", jpeg_bytes)
    data = await store.download_bytes("circles/abc/123.jpg", max_bytes=10 * 1024 * 1024)
    result = await store.delete_prefix("circles/abc/")
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, List, Optional

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Blob store call failed; the same call may be retried."""


class BlobNotFoundError(StorageError):
    """The requested blob does not exist."""


class BlobTooLargeError(StorageError):
    """The blob exceeds the caller's size cap and was not downloaded."""

    def __init__(self, path: str, size: int, max_bytes: int):
        super().__init__(f"Blob '{path}' is {size} bytes, limit is {max_bytes}")
        self.path = path
        self.size = size
        self.max_bytes = max_bytes


@dataclass
class PrefixDeleteResult:
    """Outcome of a best-effort prefix purge."""
    deleted: int = 0
    failed: int = 0


class BlobStore:
    """Async facade over one GCS bucket."""

    def __init__(
        self,
        bucket: storage.Bucket,
        timeout: float = 30.0,
        signed_url_expiration: int = 3600,
        max_concurrent_deletes: int = 8,
    ):
        """
        Args:
            bucket: google.cloud.storage Bucket handle
            timeout: Per-call timeout in seconds
            signed_url_expiration: Lifetime of download URLs in seconds
            max_concurrent_deletes: Deletes in flight at once during a prefix purge
        """
        self._bucket = bucket
        self._timeout = timeout
        self._signed_url_expiration = signed_url_expiration
        self._max_concurrent_deletes = max(1, max_concurrent_deletes)

    @classmethod
    def from_bucket_name(
        cls,
        bucket_name: str,
        project_id: Optional[str] = None,
        timeout: float = 30.0,
        signed_url_expiration: int = 3600,
    ) -> "BlobStore":
        """Build a store from a bucket name using default credentials."""
        try:
            client = storage.Client(project=project_id)
            bucket = client.bucket(bucket_name)
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}") from e

        logger.info(f"Blob store initialized for bucket {bucket_name}")
        return cls(bucket, timeout=timeout, signed_url_expiration=signed_url_expiration)

    @property
    def signed_url_expiration(self) -> int:
        return self._signed_url_expiration

    async def _call(self, action: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run a blocking client call in a worker thread.

        Every failure leaves here as a StorageError: a missing object as
        BlobNotFoundError, anything else (API errors, but also transport
        errors from requests, urllib3 or google.auth, and signing errors)
        as a plain StorageError.
        """
        # GCS calls get their own timeout; wait_for bounds the thread hand-off too.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self._timeout + 1.0,
            )
        except asyncio.TimeoutError as e:
            raise StorageError(f"Timed out trying to {action} after {self._timeout}s") from e
        except NotFound as e:
            raise BlobNotFoundError(f"Not found trying to {action}: {e}") from e
        except GoogleAPIError as e:
            raise StorageError(f"Failed to {action}: {e}") from e
        except Exception as e:
            raise StorageError(f"Unexpected error trying to {action}: {e}") from e

    async def upload_bytes(
        self,
        path: str,
        data: bytes,
        content_type: str = "image/jpeg",
    ) -> None:
        """
        Write a blob, replacing any existing object at the same path.

        Raises:
            StorageError: If the upload fails
        """
        blob = self._bucket.blob(path)
        await self._call(
            f"upload '{path}'",
            blob.upload_from_string,
            data,
            content_type=content_type,
            timeout=self._timeout,
        )
        logger.debug(f"Uploaded blob {path} ({len(data)} bytes)")

    async def download_bytes(self, path: str, max_bytes: int) -> bytes:
        """
        Read a blob into memory, refusing anything larger than max_bytes.

        Raises:
            BlobNotFoundError: If the blob does not exist
            BlobTooLargeError: If the blob exceeds max_bytes
            StorageError: If the download fails
        """
        blob = await self._call(
            f"read metadata for '{path}'", self._bucket.get_blob, path, timeout=self._timeout
        )
        if blob is None:
            raise BlobNotFoundError(f"Blob not found: {path}")

        if blob.size is not None and blob.size > max_bytes:
            raise BlobTooLargeError(path, blob.size, max_bytes)

        # end is inclusive; one extra byte detects growth since the metadata read
        data = await self._call(
            f"download '{path}'",
            blob.download_as_bytes,
            start=0,
            end=max_bytes,
            timeout=self._timeout,
        )

        if len(data) > max_bytes:
            raise BlobTooLargeError(path, len(data), max_bytes)

        return data

    async def delete(self, path: str) -> bool:
        """
        Delete a blob. An already-absent blob counts as deleted.

        Returns:
            True if an object was removed, False if it did not exist

        Raises:
            StorageError: If the delete fails for any other reason
        """
        blob = self._bucket.blob(path)
        try:
            await self._call(f"delete '{path}'", blob.delete, timeout=self._timeout)
        except BlobNotFoundError:
            logger.debug(f"Blob already absent: {path}")
            return False

        logger.debug(f"Deleted blob {path}")
        return True

    async def list_paths(self, prefix: str) -> List[str]:
        """
        List object paths under a prefix.

        Raises:
            StorageError: If listing fails
        """
        def _list() -> List[str]:
            return [b.name for b in self._bucket.list_blobs(prefix=prefix, timeout=self._timeout)]

        return await self._call(f"list '{prefix}'", _list)

    async def delete_prefix(self, prefix: str) -> PrefixDeleteResult:
        """
        Delete every blob under a prefix, best-effort.

        Individual delete failures are logged and counted, never raised.
        Listing failures are raised so the caller can retry the whole prefix.
        At most ``max_concurrent_deletes`` deletes run at once, so time spent
        waiting for a worker thread never counts against a delete's timeout.

        Raises:
            StorageError: If the prefix cannot be listed
        """
        paths = await self.list_paths(prefix)
        result = PrefixDeleteResult()
        slots = asyncio.Semaphore(self._max_concurrent_deletes)

        async def _delete_one(path: str) -> bool:
            async with slots:
                return await self.delete(path)

        outcomes = await asyncio.gather(
            *(_delete_one(path) for path in paths),
            return_exceptions=True,
        )
        for path, outcome in zip(paths, outcomes):
            if isinstance(outcome, Exception):
                result.failed += 1
                logger.warning(f"Blob delete failed for {path}: {outcome}")
            else:
                result.deleted += 1

        logger.info(
            f"Purged prefix {prefix}: {result.deleted} deleted, {result.failed} failed"
        )
        return result

    async def get_download_url(self, path: str) -> str:
        """
        Create a time-limited V4 signed GET URL for a blob.

        Raises:
            StorageError: If signing fails
        """
        blob = self._bucket.blob(path)
        return await self._call(
            f"sign URL for '{path}'",
            blob.generate_signed_url,
            version="v4",
            expiration=timedelta(seconds=self._signed_url_expiration),
            method="GET",
        )
