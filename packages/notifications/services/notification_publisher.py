from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.messaging.constants import QueueName
from common.providers.messaging.factory import get_message_queue
from common.providers.messaging.interface import MessageQueueInterface
from packages.notifications.models.domain.notifications import NotificationMessage

logger = get_logger(__name__)


class NotificationPublisher:
    """
    Best-effort publisher for billing notifications.

    A failed publish is logged and reported as False; it never fails the
    operation that triggered it.
    """

    def __init__(self, message_queue: Optional[MessageQueueInterface] = None):
        self._message_queue = message_queue

    @property
    def message_queue(self) -> MessageQueueInterface:
        if self._message_queue is None:
            self._message_queue = get_message_queue()
        return self._message_queue

    @trace_span
    async def publish(self, message: NotificationMessage) -> bool:
        body = message.model_dump(mode="json")
        try:
            published = await self.message_queue.publish(
                QueueName.BILLING_NOTIFICATIONS, body
            )
        except Exception as e:
            logger.error(
                f"Failed to publish {message.kind.value} notification: {e}",
                extra={"user_id": message.user_id, "kind": message.kind.value},
            )
            return False

        if not published:
            logger.warning(
                f"{message.kind.value} notification for user {message.user_id} was not published",
                extra={"user_id": message.user_id, "kind": message.kind.value},
            )
        return published
