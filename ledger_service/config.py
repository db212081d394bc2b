"""
Service configuration.

Every setting comes from an environment variable with a development default,
so the service boots with nothing configured.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for one service process."""

    database_url: str = "sqlite:///./ledger.db"
    jwt_secret: str = "devsecret"
    access_token_expire_minutes: int = 60
    log_level: str = "INFO"
    sql_echo: bool = False
    # When on, ledger routes only accept a bearer token for the path account.
    enforce_account_ownership: bool = False
    host: str = "127.0.0.1"
    port: int = 8080

    def __post_init__(self) -> None:
        if self.access_token_expire_minutes <= 0:
            raise ValueError("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET must not be empty")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            access_token_expire_minutes=int(
                os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(cls.access_token_expire_minutes))
            ),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            sql_echo=_env_bool("SQL_ECHO", cls.sql_echo),
            enforce_account_ownership=_env_bool(
                "ENFORCE_ACCOUNT_OWNERSHIP", cls.enforce_account_ownership
            ),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", str(cls.port))),
        )
