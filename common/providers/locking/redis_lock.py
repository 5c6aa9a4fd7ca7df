import uuid
from typing import Optional
import redis.asyncio as redis

from common.core.config import settings
from .interface import DistributedLockInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

# Delete only if the caller still owns the key
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLock(DistributedLockInterface):
    """SET NX EX lock with compare-and-delete release."""

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client
        self._lock_prefix = "lock:"

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.redis_connection_url, decode_responses=True
            )
        return self._client

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis lock provider disconnected")

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        lock_key = f"{self._lock_prefix}{resource_key}"
        lock_token = str(uuid.uuid4())

        try:
            acquired = await self._get_client().set(
                lock_key, lock_token, nx=True, ex=timeout_seconds
            )
        except Exception as e:
            logger.error(f"Error acquiring lock for {resource_key}: {e}")
            return None

        if not acquired:
            logger.debug(f"Lock for {resource_key} is held elsewhere")
            return None

        logger.debug(f"Acquired lock for {resource_key}")
        return lock_token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        lock_key = f"{self._lock_prefix}{resource_key}"

        try:
            released = await self._get_client().eval(
                RELEASE_SCRIPT, 1, lock_key, lock_token
            )
        except Exception as e:
            logger.error(f"Error releasing lock for {resource_key}: {e}")
            return False

        if not released:
            logger.warning(
                f"Lock for {resource_key} was not released: token mismatch or expired"
            )
            return False
        return True
