"""
Domain models for Lemon Squeezy webhook payloads.

Only the fields the subscription state machine reads are modelled; unknown
fields are ignored so provider-side additions never break parsing.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class LemonSqueezySubscriptionStatus(str, Enum):
    """Subscription status values reported by Lemon Squeezy."""

    ON_TRIAL = "on_trial"
    ACTIVE = "active"
    PAUSED = "paused"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class LemonSqueezyCustomData(BaseModel):
    """Custom checkout data; we store our user id here."""

    model_config = ConfigDict(extra="ignore")

    user_id: Optional[int] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def parse_user_id(cls, v):
        # Passed through checkout as a string
        if isinstance(v, str):
            v = v.strip()
            return int(v) if v.isdigit() else None
        return v


class LemonSqueezyMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_name: str
    custom_data: LemonSqueezyCustomData = Field(default_factory=LemonSqueezyCustomData)

    @field_validator("custom_data", mode="before")
    @classmethod
    def default_custom_data(cls, v):
        return v if v is not None else {}


class LemonSqueezySubscriptionAttributes(BaseModel):
    """``data.attributes`` of a subscription object."""

    model_config = ConfigDict(extra="ignore")

    variant_id: Optional[Union[int, str]] = None
    customer_id: Optional[Union[int, str]] = None
    status: Optional[str] = None
    renews_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    user_email: Optional[str] = None


class LemonSqueezySubscriptionData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str = "subscriptions"
    attributes: LemonSqueezySubscriptionAttributes = Field(
        default_factory=LemonSqueezySubscriptionAttributes
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any):
        return str(v) if v is not None else v


class LemonSqueezyWebhookEvent(BaseModel):
    """Top-level webhook body."""

    model_config = ConfigDict(extra="ignore")

    meta: LemonSqueezyMeta
    data: LemonSqueezySubscriptionData

    @property
    def event_name(self) -> str:
        return self.meta.event_name

    @property
    def provider_subscription_id(self) -> str:
        return self.data.id

    @property
    def payload(self) -> "BillingEventPayload":
        return BillingEventPayload(
            attributes=self.data.attributes, custom_data=self.meta.custom_data
        )


class BillingEventPayload(BaseModel):
    """Provider-specific part of a billing event, as applied by the state machine."""

    attributes: LemonSqueezySubscriptionAttributes = Field(
        default_factory=LemonSqueezySubscriptionAttributes
    )
    custom_data: LemonSqueezyCustomData = Field(default_factory=LemonSqueezyCustomData)
