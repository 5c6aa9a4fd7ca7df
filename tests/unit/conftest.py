import pytest
from unittest.mock import AsyncMock, MagicMock, patch


@pytest.fixture
def mock_message_queue():
    """Create a mock message queue instance for testing."""
    queue = AsyncMock()
    queue.declare_queue = AsyncMock(return_value=True)
    queue.publish = AsyncMock(return_value=True)
    queue.connect = AsyncMock(return_value=True)
    queue.disconnect = AsyncMock(return_value=None)
    return queue


@pytest.fixture(autouse=True)
def mock_get_message_queue(mock_message_queue):
    """Automatically mock get_message_queue for all unit tests."""
    with patch(
        "common.providers.messaging.factory.get_message_queue",
        return_value=mock_message_queue,
    ), patch(
        "packages.notifications.services.notification_publisher.get_message_queue",
        return_value=mock_message_queue,
    ), patch(
        "common.workers.base_worker.get_message_queue",
        return_value=mock_message_queue,
    ):
        yield


@pytest.fixture
def mock_lock_provider():
    """Create a mock lock provider instance for testing."""
    lock = AsyncMock()
    lock.acquire_lock = AsyncMock(return_value="test-lock-token")
    lock.acquire_lock_with_retry = AsyncMock(return_value="test-lock-token")
    lock.release_lock = AsyncMock(return_value=True)
    lock.disconnect = AsyncMock(return_value=None)
    return lock


@pytest.fixture(autouse=True)
def mock_get_lock_provider(mock_lock_provider):
    """Automatically mock get_lock_provider for all unit tests."""
    with patch(
        "common.providers.locking.factory.get_lock_provider",
        return_value=mock_lock_provider,
    ), patch(
        "packages.billing.services.subscription_state_machine.get_lock_provider",
        return_value=mock_lock_provider,
    ):
        yield


@pytest.fixture
def mock_span():
    """Create a mock span instance for testing telemetry."""
    span = MagicMock()
    span.__enter__ = MagicMock(return_value=span)
    span.__exit__ = MagicMock(return_value=None)
    return span


@pytest.fixture
def mock_start_span(mock_span):
    """Create a mock start_span function that returns mock_span."""
    with patch(
        "common.core.otel_axiom_exporter.axiom_tracer.start_as_current_span",
        return_value=mock_span,
    ) as mock:
        yield mock
