"""Global rate limiter instance for SlowAPI."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from common.core.config import settings

# Shared across API pods through Redis; the first exhausted limit applies.
# Webhook and health routes set their own limits.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["20/second", "600/minute"],
    storage_uri=settings.redis_connection_url,
    enabled=settings.rate_limit_enabled,
)
