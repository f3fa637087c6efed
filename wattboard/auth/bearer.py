"""
Shared-secret bearer authentication for the cron endpoints.

The scheduler calls the cron routes with ``Authorization: Bearer
{CRON_SECRET}``. The secret is compared in constant time via
secrets.compare_digest. An unset secret is a server misconfiguration and
answers 500 rather than letting every caller through.

CHANGELOG:
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

import logging
import secrets

from fastapi import HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)


def verify_bearer_token(token: str, secret: str) -> bool:
    """Check a bearer token against the shared secret in constant time.

    Args:
        token: The bearer token extracted from the Authorization header.
        secret: The configured cron secret.

    Returns:
        bool: True if both are non-empty and equal.
    """
    if not token or not secret:
        return False
    return secrets.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


class CronAuth:
    """FastAPI-compatible dependency guarding the cron routes.

    Wraps HTTPBearer for OpenAPI documentation and validates the extracted
    token against the configured secret.

    Attributes:
        secret: The expected bearer token; empty means not configured.
        scheme: FastAPI HTTPBearer security scheme.
    """

    def __init__(self, secret: str) -> None:
        self.secret = secret
        self.scheme = HTTPBearer(auto_error=False)

    async def verify(self, request: Request) -> None:
        """Reject the request unless it carries the cron secret.

        Raises:
            HTTPException: 500 if no secret is configured, 401 if the token
                is missing or wrong.
        """
        if not self.secret:
            logger.error("CRON_SECRET not configured")
            raise HTTPException(status_code=500, detail="Server configuration error")

        credentials: HTTPAuthorizationCredentials | None = await self.scheme(request)

        if credentials is None or not verify_bearer_token(credentials.credentials, self.secret):
            logger.warning("Unauthorized cron request to %s", request.url.path)
            raise HTTPException(
                status_code=401,
                detail="Unauthorized",
                headers={"WWW-Authenticate": "Bearer"},
            )
