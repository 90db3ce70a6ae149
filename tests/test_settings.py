"""Unit tests for settings validation."""

import pytest

from config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(GCS_BUCKET="bucket")

        assert settings.CIRCLE_DELETE_GRACE_HOURS == 48
        assert settings.MAX_PHOTO_BYTES == 10 * 1024 * 1024
        settings.validate_required()

    def test_missing_bucket_reported(self):
        settings = Settings(GCS_BUCKET=None, ENVIRONMENT="production", FIREBASE_CREDENTIALS_PATH=None)

        with pytest.raises(ValueError) as exc_info:
            settings.validate_required()

        message = str(exc_info.value)
        assert "GCS_BUCKET" in message
        assert "FIREBASE_CREDENTIALS_PATH" in message

    def test_cors_origins_split(self):
        settings = Settings(CORS_ORIGINS="https://a.example, https://b.example,")

        assert settings.get_cors_origins() == ["https://a.example", "https://b.example"]

    def test_zero_grace_window_reported(self):
        settings = Settings(GCS_BUCKET="bucket", CIRCLE_DELETE_GRACE_HOURS=0)

        with pytest.raises(ValueError, match="CIRCLE_DELETE_GRACE_HOURS"):
            settings.validate_required()
