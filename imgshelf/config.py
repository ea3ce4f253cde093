from pathlib import Path
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import logging
from functools import lru_cache

DEFAULT_ALLOWED_FILE_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "image/svg",
    "image/bmp",
    "image/tiff",
    # HEIC/HEIF (Apple devices)
    "image/heic",
    "image/heif",
    # Some browsers send a generic type for camera files
    "application/octet-stream",
    "image/*",
]


class Settings(BaseSettings):
    """
    Centralized application configuration with type validation.
    Automatically reads variables from the environment and the .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- General Settings ---
    DATA_PATH: str = "./data"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # --- Upload Settings ---
    MAX_FILE_SIZE: int = Field(50 * 1024 * 1024, validation_alias="MAX_FILE_SIZE")  # 50 MB
    ALLOWED_FILE_TYPES: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_FILE_TYPES)
    )

    # --- Large file writes ---
    STREAM_WRITE_THRESHOLD: int = 5 * 1024 * 1024  # 5 MB
    STREAM_WRITE_TIMEOUT_SECONDS: float = 30.0
    STREAM_CHUNK_SIZE: int = 1024 * 1024

    # --- Served file URLs ---
    FILE_URL_PREFIX: str = "/api/file/"

    @model_validator(mode="after")
    def check_limits(self):
        for key in (
            "MAX_FILE_SIZE",
            "STREAM_WRITE_THRESHOLD",
            "STREAM_CHUNK_SIZE",
        ):
            if getattr(self, key) <= 0:
                raise ValueError(f"{key} must be a positive number of bytes")
        if self.STREAM_WRITE_TIMEOUT_SECONDS <= 0:
            raise ValueError("STREAM_WRITE_TIMEOUT_SECONDS must be positive")
        if not self.DATA_PATH or not self.DATA_PATH.strip():
            raise ValueError("DATA_PATH is required and cannot be empty")

        # Mime types are compared case-insensitively
        self.ALLOWED_FILE_TYPES = [
            t.strip().lower() for t in self.ALLOWED_FILE_TYPES if t and t.strip()
        ]
        if not self.ALLOWED_FILE_TYPES:
            logging.warning(
                "ALLOWED_FILE_TYPES is empty. Uploads will only be accepted by image extension."
            )
        return self

    @property
    def DATA_DIR(self) -> Path:
        return Path(self.DATA_PATH).expanduser().resolve()


@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached instance of the application settings.
    The first call to this function will initialize the settings.
    """
    settings = Settings()
    logging.info(f"Storage root is {settings.DATA_DIR}")
    return settings
