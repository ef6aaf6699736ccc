"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_DATABASE_URL = "sqlite:///credit_plan.sqlite3"
DEFAULT_REMINDER_DAYS = 7


@dataclass(frozen=True)
class Config:
    database_url: str = DEFAULT_DATABASE_URL
    secret_key: str = "dev-secret-key"
    log_level: str = "INFO"
    log_format: str = "text"  # text or json
    reminder_days: int = DEFAULT_REMINDER_DAYS

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        env = os.environ if environ is None else environ
        try:
            reminder_days = int(env.get("CREDIT_PLAN_REMINDER_DAYS", DEFAULT_REMINDER_DAYS))
        except ValueError:
            reminder_days = DEFAULT_REMINDER_DAYS
        return cls(
            database_url=env.get("CREDIT_PLAN_DATABASE_URL") or DEFAULT_DATABASE_URL,
            secret_key=env.get("FLASK_SECRET_KEY", "dev-secret-key"),
            log_level=env.get("CREDIT_PLAN_LOG_LEVEL", "INFO").upper(),
            log_format=env.get("CREDIT_PLAN_LOG_FORMAT", "text").lower(),
            reminder_days=reminder_days,
        )
