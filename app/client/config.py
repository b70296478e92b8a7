"""Client configuration loaded from TASKIFY_* environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Where the API lives and where the client keeps its tokens."""

    model_config = SettingsConfigDict(
        env_prefix="TASKIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    API_URL: str = "http://localhost:8000/api/v1"
    # None keeps tokens in memory only.
    TOKEN_FILE: Path | None = None
    REQUEST_TIMEOUT_SEC: float = 30.0

    @field_validator("API_URL")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        s = (v or "").strip()
        if not (s.lower().startswith("http://") or s.lower().startswith("https://")):
            raise ValueError("TASKIFY_API_URL must use http or https (e.g. http://localhost:8000/api/v1)")
        return s.rstrip("/")

    @field_validator("REQUEST_TIMEOUT_SEC")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0 or v > 300:
            raise ValueError("TASKIFY_REQUEST_TIMEOUT_SEC must be greater than 0 and at most 300")
        return v


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
