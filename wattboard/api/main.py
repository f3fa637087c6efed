"""
FastAPI application factory for the Wattboard API.

Builds the application from validated Settings, installs structured JSON
logging, and wires the realtime store client, the subscription cache, the
Telegram client and the cron authentication onto app.state for route
handlers. Store and data errors are mapped to HTTP statuses here.

Run with ``uvicorn wattboard.api.main:create_app --factory`` or the
``wattboard`` console script.

CHANGELOG:
- 2026-10-16: Map invalid device records to 502 (STORY-112)
- 2026-10-12: Register logs router (STORY-111)
- 2026-10-11: Build CORS from CORS_ORIGINS (STORY-110)
- 2026-10-10: Register cron router and CronAuth (STORY-109)
- 2026-10-09: Register charts router (STORY-104)
- 2026-10-06: Register devices router (STORY-103)
- 2026-10-05: Initial creation (STORY-101)
"""

import json
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wattboard.api.charts import router as charts_router
from wattboard.api.cron import router as cron_router
from wattboard.api.devices import router as devices_router
from wattboard.api.health import router as health_router
from wattboard.api.logs import router as logs_router
from wattboard.auth.bearer import CronAuth
from wattboard.config import Settings, get_settings
from wattboard.core.timestamps import MalformedIdentifier
from wattboard.services.telegram import TelegramClient
from wattboard.store.client import DeviceNotFoundError, InvalidDeviceError, RealtimeStore, StoreError
from wattboard.store.subscriptions import SubscriptionCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the API.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build shared clients, close them on shutdown."""
    settings: Settings = app.state.settings

    store = RealtimeStore(
        settings.store_url,
        auth_token=settings.store_auth_token,
        timeout_s=settings.store_timeout_s,
    )
    telegram = TelegramClient(
        settings.telegram_bot_token,
        api_url=settings.telegram_api_url,
        timeout_s=settings.store_timeout_s,
    )
    subscriptions = SubscriptionCache(store.get_readings, settings.feed_poll_interval_s)

    app.state.store = store
    app.state.telegram = telegram
    app.state.subscriptions = subscriptions
    app.state.cron_auth = CronAuth(settings.cron_secret)

    if not settings.cron_secret:
        logger.warning("CRON_SECRET is empty; cron endpoints will answer 500")
    if not telegram.configured:
        logger.warning("TELEGRAM_BOT_TOKEN is empty; alerts cannot be delivered")
    if not settings.redis_url:
        logger.info("REDIS_URL is empty; chart caching disabled")

    logger.info("Wattboard API ready (timezone=%s)", settings.timezone)
    try:
        yield
    finally:
        await subscriptions.close()
        await store.aclose()
        await telegram.aclose()
        logger.info("Wattboard API shutting down")


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


async def _malformed_identifier(request: Request, exc: MalformedIdentifier) -> JSONResponse:
    logger.error("Corrupt upstream identifier on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


async def _store_unavailable(request: Request, exc: StoreError) -> JSONResponse:
    logger.warning("Store unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Realtime store unavailable."})


async def _invalid_device(request: Request, exc: InvalidDeviceError) -> JSONResponse:
    logger.error("Invalid device record on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


async def _device_not_found(request: Request, exc: DeviceNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Explicit settings; loaded from the environment when omitted.

    Raises:
        pydantic.ValidationError: If the environment configuration is invalid.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Wattboard API",
        description="Energy-monitoring dashboard backend.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.add_exception_handler(MalformedIdentifier, _malformed_identifier)
    app.add_exception_handler(StoreError, _store_unavailable)
    app.add_exception_handler(InvalidDeviceError, _invalid_device)
    app.add_exception_handler(DeviceNotFoundError, _device_not_found)

    app.include_router(health_router)
    app.include_router(charts_router)
    app.include_router(devices_router)
    app.include_router(logs_router)
    app.include_router(cron_router)

    @app.get("/")
    async def root() -> dict:
        """Root health check endpoint.

        Returns:
            dict: JSON object with application status.
        """
        return {"status": "ok"}

    return app


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("wattboard.api.main:create_app", factory=True, host="0.0.0.0", port=8000)
