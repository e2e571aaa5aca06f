# streamz/config.py
from __future__ import annotations

import json
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from ``STREAMZ_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STREAMZ_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "INFO"

    database_url: str = "sqlite:///./streamz.db"

    s3_endpoint_url: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_region: str = "auto"
    s3_bucket: str = "videos"
    key_prefix: str = "videos/"

    admin_token: str | None = None

    # comma separated or a JSON list; "*" allows any origin
    allowed_origins: str = "http://localhost:3000"

    chunk_size: int = Field(default=512 * 1024, gt=0)
    lookup_timeout: float = Field(default=10.0, gt=0)
    storage_connect_timeout: float = Field(default=5.0, gt=0)
    storage_read_timeout: float = Field(default=60.0, gt=0)
    max_upload_bytes: int = Field(default=500 * 1024 * 1024, gt=0)

    @field_validator("allowed_origins")
    @classmethod
    def _check_origins(cls, value: str) -> str:
        if value.strip().startswith("["):
            items = json.loads(value)
            if not isinstance(items, list) or not all(isinstance(o, str) for o in items):
                raise ValueError("allowed_origins must be a JSON list of strings")
        return value

    @property
    def origins(self) -> list[str]:
        raw = self.allowed_origins.strip()
        items = json.loads(raw) if raw.startswith("[") else raw.split(",")
        return [o.strip().rstrip("/") for o in items if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
