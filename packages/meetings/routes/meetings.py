"""
Meeting API routes.

Start, end and poll meetings, and ask whether a meeting may start.
"""

from fastapi import APIRouter, Depends, Path, Query, Response, status

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.dependencies import get_current_user
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.usage import UsageDecision, UsageStats
from packages.billing.services.budget_evaluator import BudgetEvaluator
from packages.meetings.models.domain.meeting import (
    CanStartMeetingRequest,
    Meeting,
    MeetingListResponse,
    MeetingStartRequest,
    MeetingStartResult,
    MeetingTimerStatus,
)
from packages.meetings.services.meeting_service import MeetingService

router = APIRouter()
logger = get_logger(__name__)


def get_meeting_service(
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> MeetingService:
    return MeetingService(catalog=catalog)


@router.get("/usage", response_model=UsageStats)
@trace_span
async def get_usage(
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    """Minutes, meetings and AI spend for the current billing period."""
    return await meeting_service.evaluator.get_complete_usage_stats(
        current_user.user_id
    )


@router.post("/can-start", response_model=UsageDecision)
@trace_span
async def can_start_meeting(
    request: CanStartMeetingRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    evaluator: BudgetEvaluator = meeting_service.evaluator
    return await evaluator.can_start_meeting(
        current_user.user_id, request.estimated_minutes
    )


@router.post(
    "/start", response_model=MeetingStartResult, status_code=status.HTTP_201_CREATED
)
@trace_span
async def start_meeting(
    request: MeetingStartRequest,
    response: Response,
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    """
    Start a meeting if the plan allows it.

    A denial answers 403 with the decision's reason and suggestions.
    """
    result = await meeting_service.start_meeting(
        current_user.user_id,
        estimated_minutes=request.estimated_minutes,
        title=request.title,
    )
    if not result.decision.allowed:
        response.status_code = status.HTTP_403_FORBIDDEN
    return result


@router.post("/{meeting_id}/end", response_model=Meeting)
@trace_span
async def end_meeting(
    meeting_id: int = Path(..., gt=0),
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    return await meeting_service.end_meeting(meeting_id, current_user.user_id)


@router.get("", response_model=MeetingListResponse)
@trace_span
async def list_meetings(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    return await meeting_service.list_meetings(
        current_user.user_id, limit=limit, offset=offset
    )


@router.get("/{meeting_id}", response_model=Meeting)
@trace_span
async def get_meeting(
    meeting_id: int = Path(..., gt=0),
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    return await meeting_service.get_meeting(meeting_id, current_user.user_id)


@router.get("/{meeting_id}/timer", response_model=MeetingTimerStatus)
@trace_span
async def get_meeting_timer(
    meeting_id: int = Path(..., gt=0),
    current_user: AuthenticatedUser = Depends(get_current_user),
    meeting_service: MeetingService = Depends(get_meeting_service),
):
    """
    Timer for the client countdown.

    Polling also enforces the cap: an expired meeting is closed here and
    due warnings are sent once.
    """
    return await meeting_service.check_timer(meeting_id, current_user.user_id)
