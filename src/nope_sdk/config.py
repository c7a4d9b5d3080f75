from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.nope.net"
DEFAULT_TIMEOUT_MS = 30000


class NopeSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    NOPE_API_KEY: str | None = None
    NOPE_BASE_URL: str = DEFAULT_BASE_URL
    NOPE_TIMEOUT_MS: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    NOPE_WEBHOOK_SECRET: str = ""
    NOPE_WEBHOOK_MAX_AGE_SECONDS: int = Field(default=300, ge=0)


def load_settings() -> NopeSettings:
    return NopeSettings()
