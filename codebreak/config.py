"""
Single place to read settings from the environment.

A local .env is loaded if present (dev convenience); in prod the platform
injects env vars.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: Optional[str]
    code_length: int
    lock_timeout_seconds: float
    relay_queue_size: int
    random_org_enabled: bool
    log_level: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_env=os.getenv("APP_ENV", "local"),
        database_url=os.getenv("DATABASE_URL"),
        code_length=int(os.getenv("CODE_LENGTH", "4")),
        lock_timeout_seconds=float(os.getenv("LOCK_TIMEOUT_SECONDS", "5.0")),
        relay_queue_size=int(os.getenv("RELAY_QUEUE_SIZE", "100")),
        random_org_enabled=_flag("RANDOM_ORG_ENABLED"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
