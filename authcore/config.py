"""
Client configuration loaded from environment variables.
"""
from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Client settings from environment variables."""

    # Backend API
    api_base_url: str = "http://localhost:5000/api"
    api_timeout_seconds: float = 30.0

    # Durable storage ("remember me" survives restarts)
    storage_dir: str = ".authcore"
    durable_storage_file: str = "local_storage.json"

    # Key of the persisted session slice
    persist_key: str = "auth"

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    @property
    def durable_storage_path(self) -> Path:
        return Path(self.storage_dir) / self.durable_storage_file

    class Config:
        env_prefix = "AUTHCORE_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
