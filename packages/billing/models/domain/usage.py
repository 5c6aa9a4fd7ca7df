"""
Domain models for usage tracking and quota decisions.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from packages.billing.models.domain.enums import AiUsageContext, PlanId


class UsageDecision(BaseModel):
    """
    Answer to "may this user do X now?".

    A denial is a normal value, never an exception. ``reason`` and
    ``suggestions`` are user-facing text.
    """

    allowed: bool
    reason: Optional[str] = None
    suggestions: list[str] = []

    @classmethod
    def allow(cls) -> "UsageDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, suggestions: Optional[list[str]] = None) -> "UsageDecision":
        return cls(allowed=False, reason=reason, suggestions=suggestions or [])


class AiBudgetDecision(UsageDecision):
    """AI affordability decision with the budget figures behind it."""

    current_spend: Decimal
    max_spend: Decimal
    estimated_cost: Decimal
    budget_usage_percent: float
    warning: bool = False  # True once 75% of the budget is used


class UsageStats(BaseModel):
    """Complete usage statistics for the current billing period."""

    plan_id: PlanId
    period_start: datetime
    period_end: datetime

    minutes_used: int
    minutes_limit: Optional[int] = None
    max_minutes_per_meeting: int
    meetings_this_period: int
    max_meetings_per_week: Optional[int] = None
    has_active_meeting: bool

    ai_cost_this_period: Decimal
    ai_budget: Decimal
    remaining_budget: Decimal
    budget_usage_percent: float


class AiUsageRecord(BaseModel):
    id: int
    user_id: int
    meeting_id: Optional[int] = None
    provider_id: str
    input_tokens: int
    output_tokens: int
    cost_usd: Decimal
    context: AiUsageContext
    created_at: datetime

    class Config:
        from_attributes = True


class AiUsageCreateModel(BaseModel):
    """Model for inserting an AI usage record. The cost is already computed."""

    user_id: int
    meeting_id: Optional[int] = None
    provider_id: str
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    cost_usd: Decimal
    context: str
    created_at: Optional[datetime] = None

    @field_validator("context", mode="before")
    @classmethod
    def validate_context(cls, v):
        if isinstance(v, AiUsageContext):
            return v.value
        return v


class AiUsageRequest(BaseModel):
    """Request body for recording one AI request."""

    provider_id: str
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    context: AiUsageContext = AiUsageContext.CUSTOM
    meeting_id: Optional[int] = None


class AiAffordabilityRequest(BaseModel):
    """Request body for the AI affordability check. Defaults to a typical request."""

    provider_id: Optional[str] = None
    input_tokens: Optional[int] = Field(default=None, ge=0)
    output_tokens: Optional[int] = Field(default=None, ge=0)
