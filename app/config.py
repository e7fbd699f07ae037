from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from ``CMS_*`` environment variables or ``.env``."""

    api_base_url: str = "http://127.0.0.1:8000/api"
    # Origin used to turn relative storage paths returned by the backend into URLs
    storage_base_url: str = "http://127.0.0.1:8000/storage"
    api_token: str = ""

    request_timeout: float = Field(default=5.0, gt=0)
    cache_ttl: float = Field(default=300.0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=2.0, ge=0)
    retry_jitter_ratio: float = Field(default=0.1, ge=0, le=1)

    snapshot_dir: Optional[str] = None
    max_upload_bytes: int = 2 * 1024 * 1024

    model_config = SettingsConfigDict(env_prefix="CMS_", env_file=".env", extra="ignore")


def get_settings() -> Settings:
    return Settings()
