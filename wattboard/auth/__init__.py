"""
Authentication package.

Exports the CronAuth dependency class and the constant-time token check
used by the cron routes.

CHANGELOG:
- 2026-10-10: Initial creation (STORY-109)

TODO:
- None
"""

from wattboard.auth.bearer import CronAuth, verify_bearer_token

__all__ = ["CronAuth", "verify_bearer_token"]
