from abc import ABC, abstractmethod
from typing import Dict, Any


class MessageQueueInterface(ABC):
    """Outbound message queue. Publishing never raises; it reports success."""

    @abstractmethod
    async def connect(self) -> bool:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def publish(self, queue: str, message: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    async def declare_queue(
        self, queue: str, durable: bool = True, dlq_enabled: bool = True
    ) -> bool:
        pass
