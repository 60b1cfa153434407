from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field

TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    database_url: str = Field(default="sqlite:///./pulsevote.db")
    jwt_secret: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=60)
    allow_reset: bool = Field(default=False)
    rate_limit_enabled: bool = Field(default=True)
    auth_rate_limit: str = Field(default="5/minute;50/hour")
    password_pepper: str = Field(default="")
    log_file: str = Field(default="pulsevote.log")


def _flag(name: str, default: str) -> bool:
    return (os.getenv(name, default) or "").strip().lower() in TRUTHY


def _load_settings() -> Settings:
    env = os.getenv
    return Settings(
        database_url=env("DATABASE_URL") or "sqlite:///./pulsevote.db",
        jwt_secret=env("JWT_SECRET") or "change-me",
        jwt_algorithm=env("JWT_ALGORITHM") or "HS256",
        jwt_expire_minutes=int(env("JWT_EXPIRE_MINUTES") or "60"),
        allow_reset=_flag("ALLOW_RESET", "0"),
        rate_limit_enabled=_flag("RATE_LIMIT_ENABLED", "1"),
        auth_rate_limit=env("AUTH_RATE_LIMIT") or "5/minute;50/hour",
        password_pepper=env("PASSWORD_PEPPER", ""),
        log_file=env("LOG_FILE") or "pulsevote.log",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
