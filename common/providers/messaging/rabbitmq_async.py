from typing import Dict, Any
import json
import aio_pika
from aio_pika import connect_robust, Message
from urllib.parse import quote

from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from common.core.config import settings
from .interface import MessageQueueInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

propagator = TraceContextTextMapPropagator()


class QueueConfig:
    DLQ_MESSAGE_TTL_MS = 86400000  # 24 hours
    DLQ_MAX_LENGTH = 10000
    DLX_SUFFIX = ".dlx"
    DLQ_SUFFIX = ".dlq"


class RabbitMQClient(MessageQueueInterface):
    """aio-pika publisher over a robust (auto-reconnecting) connection."""

    def __init__(self):
        self.connection = None
        self.channel = None
        self._declared: set[str] = set()

    @property
    def _url(self) -> str:
        return (
            f"amqp://{quote(settings.rabbitmq_username)}:{quote(settings.rabbitmq_password)}"
            f"@{settings.rabbitmq_host}:{settings.rabbitmq_port}/{settings.rabbitmq_vhost}"
        )

    async def _ensure_channel(self) -> None:
        if not self.channel or self.channel.is_closed:
            await self.connect()

    async def connect(self) -> bool:
        try:
            self.connection = await connect_robust(self._url)
            self.channel = await self.connection.channel()
            self._declared.clear()
            logger.info("Connected to RabbitMQ")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            return False

    async def disconnect(self) -> None:
        try:
            if self.channel and not self.channel.is_closed:
                await self.channel.close()
            if self.connection and not self.connection.is_closed:
                await self.connection.close()
            logger.info("Disconnected from RabbitMQ")
        except Exception as e:
            logger.error(f"Error disconnecting from RabbitMQ: {e}")

    async def _dead_letter_arguments(self, queue: str) -> Dict[str, Any]:
        dlx_name = f"{queue}{QueueConfig.DLX_SUFFIX}"
        dlq_name = f"{queue}{QueueConfig.DLQ_SUFFIX}"

        await self.channel.declare_exchange(
            name=dlx_name, type=aio_pika.ExchangeType.DIRECT, durable=True
        )
        dlq = await self.channel.declare_queue(
            dlq_name,
            durable=True,
            arguments={
                "x-message-ttl": QueueConfig.DLQ_MESSAGE_TTL_MS,
                "x-max-length": QueueConfig.DLQ_MAX_LENGTH,
            },
        )
        await dlq.bind(dlx_name, routing_key=queue)

        return {
            "x-dead-letter-exchange": dlx_name,
            "x-dead-letter-routing-key": queue,
        }

    async def declare_queue(
        self, queue: str, durable: bool = True, dlq_enabled: bool = True
    ) -> bool:
        if queue in self._declared:
            return True
        try:
            await self._ensure_channel()
            arguments = await self._dead_letter_arguments(queue) if dlq_enabled else None
            await self.channel.declare_queue(queue, durable=durable, arguments=arguments)
            self._declared.add(queue)
            logger.info(f"Declared queue: {queue} (DLQ enabled: {dlq_enabled})")
            return True
        except Exception as e:
            logger.error(f"Failed to declare queue {queue}: {e}")
            return False

    async def publish(self, queue: str, message: Dict[str, Any]) -> bool:
        try:
            await self._ensure_channel()
            await self.declare_queue(queue)

            # Carry the current trace across the queue
            headers: Dict[str, Any] = {}
            propagator.inject(headers)

            await self.channel.default_exchange.publish(
                Message(
                    body=json.dumps(message, default=str).encode(),
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                    content_type="application/json",
                    headers=headers,
                ),
                routing_key=queue,
                mandatory=True,
            )
            logger.info(f"Published message to queue {queue}")
            return True
        except Exception as e:
            logger.error(f"Failed to publish message to {queue}: {e}")
            return False
