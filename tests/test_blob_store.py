"""Unit tests for the GCS-backed BlobStore (bucket mocked)."""

import threading
import time

import pytest
from unittest.mock import MagicMock

from google.api_core.exceptions import Forbidden, NotFound, ServiceUnavailable

from common.storage import BlobNotFoundError, BlobStore, BlobTooLargeError, StorageError


@pytest.fixture
def bucket():
    return MagicMock()


@pytest.fixture
def store(bucket):
    return BlobStore(bucket, timeout=5.0, signed_url_expiration=600)


def _named_blob(name):
    blob = MagicMock()
    blob.name = name
    return blob


class TestUpload:
    @pytest.mark.asyncio
    async def test_uploads_with_content_type(self, store, bucket):
        await store.upload_bytes("circles/c1/p1.jpg", b"jpeg")

        bucket.blob.assert_called_once_with("circles/c1/p1.jpg")
        bucket.blob.return_value.upload_from_string.assert_called_once_with(
            b"jpeg", content_type="image/jpeg", timeout=5.0
        )

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, store, bucket):
        bucket.blob.return_value.upload_from_string.side_effect = ServiceUnavailable("down")

        with pytest.raises(StorageError):
            await store.upload_bytes("circles/c1/p1.jpg", b"jpeg")

    @pytest.mark.asyncio
    async def test_transport_error_outside_api_core_wrapped(self, store, bucket):
        # Raised by the HTTP transport underneath the client library
        bucket.blob.return_value.upload_from_string.side_effect = ConnectionResetError("reset by peer")

        with pytest.raises(StorageError) as exc_info:
            await store.upload_bytes("circles/c1/p1.jpg", b"jpeg")

        assert not isinstance(exc_info.value, BlobNotFoundError)
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)


class TestDownload:
    @pytest.mark.asyncio
    async def test_refuses_oversized_blob_before_download(self, store, bucket):
        blob = MagicMock(size=11 * 1024 * 1024)
        bucket.get_blob.return_value = blob

        with pytest.raises(BlobTooLargeError) as exc:
            await store.download_bytes("circles/c1/big.jpg", max_bytes=10 * 1024 * 1024)

        assert exc.value.size == 11 * 1024 * 1024
        blob.download_as_bytes.assert_not_called()

    @pytest.mark.asyncio
    async def test_downloads_within_cap(self, store, bucket):
        blob = MagicMock(size=4)
        blob.download_as_bytes.return_value = b"jpeg"
        bucket.get_blob.return_value = blob

        data = await store.download_bytes("circles/c1/p1.jpg", max_bytes=100)

        assert data == b"jpeg"
        blob.download_as_bytes.assert_called_once_with(start=0, end=100, timeout=5.0)

    @pytest.mark.asyncio
    async def test_growth_past_cap_detected(self, store, bucket):
        blob = MagicMock(size=None)
        blob.download_as_bytes.return_value = b"x" * 11
        bucket.get_blob.return_value = blob

        with pytest.raises(BlobTooLargeError):
            await store.download_bytes("circles/c1/p1.jpg", max_bytes=10)

    @pytest.mark.asyncio
    async def test_missing_blob(self, store, bucket):
        bucket.get_blob.return_value = None

        with pytest.raises(BlobNotFoundError):
            await store.download_bytes("circles/c1/gone.jpg", max_bytes=100)


class TestDelete:
    @pytest.mark.asyncio
    async def test_absent_blob_is_not_an_error(self, store, bucket):
        bucket.blob.return_value.delete.side_effect = NotFound("gone")

        assert await store.delete("circles/c1/p1.jpg") is False

    @pytest.mark.asyncio
    async def test_prefix_delete_counts_failures_without_raising(self, store, bucket):
        bucket.list_blobs.return_value = [
            _named_blob("circles/c1/a.jpg"),
            _named_blob("circles/c1/b.jpg"),
            _named_blob("circles/c1/c.jpg"),
        ]
        blobs = {}

        def _blob(path):
            blob = MagicMock()
            if path.endswith("b.jpg"):
                blob.delete.side_effect = Forbidden("denied")
            blobs[path] = blob
            return blob

        bucket.blob.side_effect = _blob

        result = await store.delete_prefix("circles/c1/")

        assert result.deleted == 2
        assert result.failed == 1
        bucket.list_blobs.assert_called_once_with(prefix="circles/c1/", timeout=5.0)

    @pytest.mark.asyncio
    async def test_prefix_delete_bounded_concurrency(self, bucket):
        store = BlobStore(bucket, timeout=5.0, max_concurrent_deletes=2)
        bucket.list_blobs.return_value = [_named_blob(f"circles/c1/{i}.jpg") for i in range(8)]
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def _delete(**kwargs):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.02)
            with lock:
                active[0] -= 1

        bucket.blob.return_value.delete.side_effect = _delete

        result = await store.delete_prefix("circles/c1/")

        assert result.deleted == 8
        assert result.failed == 0
        assert peak[0] <= 2

    @pytest.mark.asyncio
    async def test_prefix_listing_failure_raises(self, store, bucket):
        bucket.list_blobs.side_effect = ServiceUnavailable("down")

        with pytest.raises(StorageError):
            await store.delete_prefix("circles/c1/")


class TestSignedUrl:
    @pytest.mark.asyncio
    async def test_v4_get_url(self, store, bucket):
        bucket.blob.return_value.generate_signed_url.return_value = "https://signed"

        url = await store.get_download_url("circles/c1/p1.jpg")

        assert url == "https://signed"
        kwargs = bucket.blob.return_value.generate_signed_url.call_args[1]
        assert kwargs["version"] == "v4"
        assert kwargs["method"] == "GET"
        assert kwargs["expiration"].total_seconds() == 600
