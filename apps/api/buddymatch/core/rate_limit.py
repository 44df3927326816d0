"""Rate limiting configuration for the buddy matching API."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from buddymatch.core.config import settings
from buddymatch.core.redis_client import get_redis_url

logger = logging.getLogger(__name__)

# Use Redis for multi-worker support when configured, in-memory otherwise.
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
AI_SUGGESTIONS_LIMIT = f"{max(settings.RATE_LIMIT_AI, 1)}/minute"


def _storage_uri() -> str:
    url = get_redis_url()
    if IS_TESTING or not url:
        return "memory://"
    try:
        import redis

        # Test connection upfront
        r = redis.from_url(url, socket_connect_timeout=1)
        r.ping()
        return url
    except Exception as e:
        logger.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return "memory://"


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_storage_uri(),
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)
