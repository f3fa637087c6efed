"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded URLs or credentials.

CHANGELOG:
- 2026-10-11: Add TIMEZONE and local_now() for calendar anchoring (STORY-110)
- 2026-10-10: Add Telegram and cron settings (STORY-109)
- 2026-10-05: Initial creation (STORY-101)

TODO:
- None
"""

from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Wattboard configuration.

    Attributes:
        store_url: Base URL of the realtime JSON database (must be HTTPS).
        store_auth_token: Database secret or ID token sent as ``auth=``.
        store_timeout_s: Timeout in seconds for every store request.
        redis_url: Redis URL for chart caching; empty disables caching.
        cache_ttl_s: TTL of cached chart payloads in seconds.
        feed_poll_interval_s: Seconds between polls of a shared feed.
        cron_secret: Shared secret expected as ``Bearer`` on cron routes.
        telegram_bot_token: Telegram Bot API token.
        telegram_api_url: Telegram Bot API base URL.
        timezone: IANA zone the devices write their identifiers in.
        log_level: Root log level.
        cors_origins: Comma-separated allowed CORS origins.
    """

    store_url: str
    store_auth_token: str = ""
    store_timeout_s: float = 10.0
    redis_url: str = ""
    cache_ttl_s: int = 30
    feed_poll_interval_s: float = 15.0
    cron_secret: str = ""
    telegram_bot_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    timezone: str = "UTC"
    log_level: str = "INFO"
    cors_origins: str = "*"

    @field_validator("store_url")
    @classmethod
    def store_url_must_be_https(cls, v: str) -> str:
        """Reject plain-HTTP store URLs; the store carries user data."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"STORE_URL must use HTTPS (got: '{v[:20]}...').")
        return v.rstrip("/")

    @field_validator("store_timeout_s")
    @classmethod
    def store_timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("STORE_TIMEOUT_S must be > 0")
        return v

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    @field_validator("feed_poll_interval_s")
    @classmethod
    def feed_poll_interval_must_be_positive(cls, v: float) -> float:
        if v < 1:
            raise ValueError("FEED_POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("timezone")
    @classmethod
    def timezone_must_exist(cls, v: str) -> str:
        """Validate the zone name against the IANA database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"TIMEZONE '{v}' is not a known IANA zone") from None
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL '{v}' is not a logging level")
        return level

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def local_now(self) -> datetime:
        """Current wall-clock time in the device timezone, as a naive datetime.

        Reading identifiers are naive local instants, so the calendar anchor
        handed to the aggregation core must be too.
        """
        return datetime.now(ZoneInfo(self.timezone)).replace(tzinfo=None)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
