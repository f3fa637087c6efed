"""
Health check endpoint for the Wattboard API.

Provides a simple GET /health endpoint that returns {"status": "ok"} with
HTTP 200, plus the number of shared feeds currently running. No
authentication is required; this is intended for container health checks
and internal monitoring only.

CHANGELOG:
- 2026-10-08: Report active feed count (STORY-105)
- 2026-10-05: Initial creation (STORY-101)

TODO:
- None
"""

from fastapi import APIRouter

from wattboard.api.deps import Subscriptions

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(subscriptions: Subscriptions) -> dict[str, str | int]:
    """Return a simple health status.

    Returns:
        dict: ``{"status": "ok", "active_feeds": n}``.
    """
    return {"status": "ok", "active_feeds": len(subscriptions.active_keys())}
