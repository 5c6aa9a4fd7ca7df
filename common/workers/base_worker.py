import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from common.providers.messaging.factory import get_message_queue
from common.providers.messaging.interface import MessageQueueInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class BaseWorker(ABC):
    """
    Base class for workers that run a unit of work on a fixed interval.

    A failing tick is logged and the loop carries on with the next one, so a
    transient store or broker outage only delays work.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        worker_id: Optional[str] = None,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"{name}_{uuid4()}"
        self.message_queue: Optional[MessageQueueInterface] = None
        self.running = False
        self._stop_event = asyncio.Event()

    async def setup(self):
        """Initialize worker dependencies."""
        self.message_queue = get_message_queue()
        await self.message_queue.connect()
        logger.info(f"Worker {self.worker_id} setup completed")

    async def cleanup(self):
        """Release worker resources."""
        try:
            if self.message_queue:
                await self.message_queue.disconnect()
            logger.info(f"Worker {self.worker_id} cleanup completed")
        except Exception as e:
            logger.error(f"Error cleaning up worker {self.worker_id}: {e}")

    async def tick(self) -> bool:
        """Run one unit of work. Returns False if it raised."""
        try:
            await self.run_once()
            return True
        except Exception as e:
            logger.error(
                f"Error in worker {self.worker_id} tick: {e}",
                exc_info=True,
            )
            return False

    async def start(self):
        """Run ticks until stop() is called."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        self._stop_event.clear()
        logger.info(
            f"Starting worker {self.worker_id} every {self.interval_seconds}s"
        )

        try:
            await self.setup()
            while self.running:
                await self.tick()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.interval_seconds
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            await self.cleanup()

    async def stop(self):
        """Ask the loop to exit after the current tick."""
        self.running = False
        self._stop_event.set()
        logger.info(f"Stopping worker {self.worker_id}")

    @abstractmethod
    async def run_once(self):
        """One unit of work. Must be implemented by subclasses."""
        pass
