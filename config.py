"""
Application settings loaded from environment variables.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEV_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    # ── Security ──────────────────────────────────────────────────────────
    jwt_secret: str = DEV_JWT_SECRET   # HMAC secret for bearer tokens

    # ── Runtime ───────────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False
    enable_debug_routes: bool = False   # mounts /api/debug/*

    # ── Server ────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["*"]

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("jwt_secret")
    @classmethod
    def blank_secret_means_unset(cls, v: str) -> str:
        return v.strip() or DEV_JWT_SECRET

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "test")

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEV_JWT_SECRET
