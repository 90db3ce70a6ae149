"""
Infrastructure settings shared by the API and the cleanup job.

Values come from the environment (or a ``.env`` file next to the process);
the application subclasses this with its own domain settings.

Example:
    class Settings(BaseAppSettings):
        MAX_PHOTO_BYTES: int = 10 * 1024 * 1024

    settings = Settings()
    settings.validate_required()
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    """Connection, identity, storage and server settings."""

    # ==========================================================================
    # MongoDB
    # ==========================================================================
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "crcle"
    # Applied to server selection, connect and socket reads
    MONGODB_TIMEOUT_MS: int = 10000

    # ==========================================================================
    # Firebase (ID token verification only)
    # ==========================================================================
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None

    # ==========================================================================
    # Google Cloud Storage
    # ==========================================================================
    GCS_BUCKET: Optional[str] = None
    GOOGLE_CLOUD_PROJECT: Optional[str] = None
    GCS_SIGNED_URL_EXPIRATION: int = 3600  # seconds
    STORAGE_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # HTTP server
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: str = "*"  # comma-separated
    CORS_ALLOW_CREDENTIALS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    def get_cors_origins(self) -> List[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    def configuration_problems(self) -> List[str]:
        """Problems with the infrastructure settings, one message each."""
        problems = []

        if not self.GCS_BUCKET:
            problems.append("GCS_BUCKET is required for photo storage")
        if self.is_production() and not self.FIREBASE_CREDENTIALS_PATH:
            problems.append("FIREBASE_CREDENTIALS_PATH is required in production")
        if self.STORAGE_TIMEOUT_SECONDS <= 0:
            problems.append("STORAGE_TIMEOUT_SECONDS must be positive")
        if self.MONGODB_TIMEOUT_MS <= 0:
            problems.append("MONGODB_TIMEOUT_MS must be positive")
        return problems

    def validate_required(self) -> None:
        """
        Fail startup early on settings the services cannot run without.

        Raises:
            ValueError: Listing every problem found, one per line
        """
        problems = self.configuration_problems()
        if problems:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(problems))
