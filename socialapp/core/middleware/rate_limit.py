"""Rate limiting utilities.

Wraps the slowapi limiter with a no-op variant under APP_ENV=test so fixtures
can hammer auth endpoints without tripping limits.
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from socialapp.core.config import settings


class _NoOpLimiter:
    """Stand-in used when rate limiting is disabled."""

    enabled = False

    def limit(self, *args, **kwargs):
        def decorator(func):
            return func

        return decorator


if os.getenv("APP_ENV", settings.environment).lower() == "test":
    limiter = _NoOpLimiter()
else:
    limiter = Limiter(
        key_func=get_remote_address, default_limits=["300 per minute", "5000 per day"]
    )

__all__ = ["limiter"]
