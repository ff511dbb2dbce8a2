"""
Environment-driven settings.

Values are read once from the process environment; tests build a
``Settings`` instance directly or call ``reset_settings()`` after patching
the environment.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    return default if v is None else v.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, ""))
    except ValueError:
        return default


class Settings(BaseModel):
    database_url: Optional[str] = None
    account_issuer_url: str = "http://localhost:5001/pulselink/us-central1"
    account_issuer_timeout: float = Field(default=10.0, gt=0)
    account_issuer_token: Optional[str] = None
    virtual_email_prefix: str = "senior_"
    virtual_email_domain: str = "pulselink.app"
    relation_secret_key: Optional[str] = None
    jwt_secret: str = "change-this-secret"
    log_level: str = "INFO"
    dev_mode: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            account_issuer_url=os.getenv(
                "ACCOUNT_ISSUER_URL", cls.model_fields["account_issuer_url"].default
            ),
            account_issuer_timeout=_env_float("ACCOUNT_ISSUER_TIMEOUT", 10.0),
            account_issuer_token=os.getenv("ACCOUNT_ISSUER_TOKEN"),
            virtual_email_prefix=os.getenv("VIRTUAL_EMAIL_PREFIX", "senior_"),
            virtual_email_domain=os.getenv("VIRTUAL_EMAIL_DOMAIN", "pulselink.app"),
            relation_secret_key=os.getenv("RELATION_SECRET_KEY"),
            jwt_secret=os.getenv("JWT_SECRET", "change-this-secret"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            dev_mode=_env_bool("DEV_MODE"),
        )


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def reset_settings() -> None:
    global _SETTINGS
    _SETTINGS = None
