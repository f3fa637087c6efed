"""
Cron-triggered endpoints: energy alerts and Telegram chat discovery.

Both routes require ``Authorization: Bearer {CRON_SECRET}`` and are meant to
be called by an external scheduler. Per-item failures are reported in the
response body; a failure of the whole run answers 500 with
``{error, details}``.

CHANGELOG:
- 2026-10-16: Any unexpected run failure answers the {error, details} body (STORY-112)
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from wattboard.api.deps import Store, Telegram, require_cron_secret
from wattboard.services.alerts import AlertReport, check_energy_limits
from wattboard.services.discovery import DiscoveryReport, discover_chats

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


def _run_failed(job: str, exc: Exception) -> JSONResponse:
    logger.error("Error in %s cron", job, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


@router.get("/energy-alerts", response_model=AlertReport)
async def energy_alerts(store: Store, telegram: Telegram) -> AlertReport | JSONResponse:
    """Check every device against its energy limit and broadcast alerts."""
    try:
        return await check_energy_limits(store, telegram)
    except Exception as exc:
        return _run_failed("energy-alerts", exc)


@router.get("/telegram-discovery", response_model=DiscoveryReport)
async def telegram_discovery(store: Store, telegram: Telegram) -> DiscoveryReport | JSONResponse:
    """Register private chats that messaged the bot since the last run."""
    try:
        return await discover_chats(store, telegram)
    except Exception as exc:
        return _run_failed("telegram-discovery", exc)
