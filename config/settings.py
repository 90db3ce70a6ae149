"""
Crcle application settings.

Extends the base settings with circle lifecycle, upload and cleanup
configuration.
"""

from typing import List

from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Crcle-specific settings."""

    # ==========================================================================
    # Circle Lifecycle
    # ==========================================================================
    # Grace period between close and deletion
    CIRCLE_DELETE_GRACE_HOURS: int = 48

    # Allowed open-window durations
    CIRCLE_MIN_DURATION_DAYS: int = 1
    CIRCLE_MAX_DURATION_DAYS: int = 7

    # ==========================================================================
    # Photos
    # ==========================================================================
    # Upload and auto-save download cap
    MAX_PHOTO_BYTES: int = 10 * 1024 * 1024

    # ==========================================================================
    # Scheduled Cleanup
    # ==========================================================================
    CLEANUP_BATCH_SIZE: int = 25
    CLEANUP_INTERVAL_SECONDS: int = 3600

    # ==========================================================================
    # Client Sync Engine (device-local state)
    # ==========================================================================
    CLIENT_PREFERENCES_PATH: str = "crcle_prefs.json"
    CLIENT_GALLERY_PATH: str = "Pictures/Circle"

    def configuration_problems(self) -> List[str]:
        problems = super().configuration_problems()
        # Circles need a non-empty grace window after close
        if self.CIRCLE_DELETE_GRACE_HOURS <= 0:
            problems.append("CIRCLE_DELETE_GRACE_HOURS must be positive")
        if not 1 <= self.CIRCLE_MIN_DURATION_DAYS <= self.CIRCLE_MAX_DURATION_DAYS:
            problems.append("CIRCLE_MIN_DURATION_DAYS must be at least 1 and at most CIRCLE_MAX_DURATION_DAYS")
        return problems


# Global settings instance
settings = Settings()
