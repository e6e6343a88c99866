from __future__ import annotations

import os
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(..., alias="DATABASE_URL")
    token_secret: str = Field(..., alias="TOKEN_SECRET")
    token_ttl_seconds: int = Field(7 * 24 * 3600, alias="TOKEN_TTL_SECONDS")

    admin_token: str | None = Field(None, alias="ADMIN_TOKEN")
    password_hash_iterations: int = Field(310_000, alias="PASSWORD_HASH_ITERATIONS")

    cors_origins_raw: str = Field("*", alias="CORS_ORIGINS")

    default_page_limit: int = Field(20, alias="DEFAULT_PAGE_LIMIT")
    max_page_limit: int = Field(100, alias="MAX_PAGE_LIMIT")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        items = [item.strip() for item in self.cors_origins_raw.split(",") if item.strip()]
        return items or ["*"]

    def clamp_page_limit(self, limit: int | None) -> int:
        if not limit or limit < 1:
            return self.default_page_limit
        return min(int(limit), self.max_page_limit)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


# For local dev convenience only.
if os.getenv("COMMAND_CENTER_DEBUG_SETTINGS"):
    print(get_settings())
