from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.workers.base_worker import BaseWorker
from packages.meetings.models.domain.meeting import SweepResult
from packages.meetings.services.meeting_service import MeetingService

logger = get_logger(__name__)


class MeetingSweeper(BaseWorker):
    """Closes meetings past their cap and sends time warnings, every few seconds."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        meeting_service: Optional[MeetingService] = None,
    ):
        super().__init__(
            name="meeting_sweeper",
            interval_seconds=interval_seconds or settings.meeting_sweep_interval_seconds,
        )
        self.meeting_service = meeting_service or MeetingService()

    @trace_span
    async def run_once(self) -> SweepResult:
        return await self.meeting_service.enforce_time_limits()
