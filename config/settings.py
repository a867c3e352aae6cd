"""
config/settings.py
Application settings loaded from environment variables.
Uses Pydantic BaseSettings for validation and type safety.
"""

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "Dest Admin Panel"
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str

    # ── Server ───────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 2

    # ── Rate limiting ────────────────────────────────────────
    RATE_LIMIT_UNAUTH_PER_MINUTE: int = 60

    # ── Database ─────────────────────────────────────────────
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_POOL_TIMEOUT: int = 30

    # ── Redis ────────────────────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── Admin Login ──────────────────────────────────────────
    ADMIN_LOGIN_EMAILS: str = "admin@example.com"
    ADMIN_OTP_SENDER: str = "Dest Admin"
    OTP_TTL_SECONDS: int = 120
    OTP_LENGTH: int = 6
    ADMIN_SESSION_HOURS: int = 6

    # ── JWT ──────────────────────────────────────────────────
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # ── Email ────────────────────────────────────────────────
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "noreply@dest.app"

    # ── Frontend ─────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # ── Tables ───────────────────────────────────────────────
    TABLE_PAGE_SIZES: List[int] = [10, 25, 50]
    TABLE_DEFAULT_PAGE_SIZE: int = 10
    PARTNER_FETCH_LIMIT: int = 500
    CUSTOMER_FETCH_LIMIT: int = 1000
    SUPPORT_FETCH_LIMIT: int = 100
    DASHBOARD_PARTNER_LIMIT: int = 20
    DASHBOARD_CUSTOMER_LIMIT: int = 50

    # ── Display ──────────────────────────────────────────────
    DISPLAY_TIMEZONE: str = "UTC"
    DEFAULT_CURRENCY: str = "INR"

    @field_validator("TABLE_PAGE_SIZES")
    @classmethod
    def page_sizes_sorted(cls, v: List[int]) -> List[int]:
        sizes = sorted({size for size in v if size > 0})
        if not sizes:
            raise ValueError("TABLE_PAGE_SIZES needs at least one positive size")
        return sizes

    @property
    def allowed_origins_list(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def admin_emails_list(self) -> List[str]:
        return [e.strip().lower() for e in self.ADMIN_LOGIN_EMAILS.split(",") if e.strip()]

    @property
    def email_configured(self) -> bool:
        return bool(self.RESEND_API_KEY and self.EMAIL_FROM)

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
