"""
Service settings, read from ``NPI_*`` environment variables or ``.env``.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from ml.config import MODEL_PATH


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NPI_", env_file=".env", extra="ignore", protected_namespaces=()
    )

    app_name: str = "Nairobi Property Intel API"
    app_version: str = "1.0.0"

    model_path: str = str(MODEL_PATH)

    # Hosted listing store (PostgREST).  Live-data routes answer 503 when unset.
    store_url: Optional[str] = None
    store_key: Optional[str] = None
    store_timeout: float = 10.0
    store_max_retries: int = 3

    cors_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
