import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional


class DistributedLockInterface(ABC):
    """Mutual exclusion across processes, keyed by resource name."""

    @abstractmethod
    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        """
        Try once to take the lock.

        Returns an owner token, or None when someone else holds it. The lock
        expires on its own after ``timeout_seconds`` if never released.
        """
        pass

    @abstractmethod
    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        """Release the lock if ``lock_token`` still owns it."""
        pass

    async def disconnect(self) -> None:
        pass

    async def acquire_lock_with_retry(
        self,
        resource_key: str,
        lock_ttl_seconds: int = 30,
        acquire_timeout_seconds: float = 5.0,
        retry_interval_ms: int = 50,
    ) -> Optional[str]:
        """Poll ``acquire_lock`` until it succeeds or the timeout elapses (None)."""
        deadline = time.monotonic() + acquire_timeout_seconds
        while True:
            token = await self.acquire_lock(resource_key, lock_ttl_seconds)
            if token:
                return token
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(retry_interval_ms / 1000)
