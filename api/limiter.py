"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware and register the 429
handler) and in route modules (to apply per-route limits with
@limiter.limit()). A single shared instance means every route counts against
the same in-memory store.

Limits are keyed by client IP. RATE_LIMIT_ENABLED=false switches the limiter
off entirely (test runs log in far more often than a real client would).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)


def login_limit() -> str:
    """Current login limit, e.g. "10/minute" (LOGIN_RATE_LIMIT)."""
    return get_settings().login_rate_limit
