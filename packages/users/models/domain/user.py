from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr

from packages.billing.models.domain.enums import PlanId


class User(BaseModel):
    id: int
    email: EmailStr
    current_plan: PlanId = PlanId.FREE
    last_free_trial_started_at: Optional[datetime] = None
    billing_customer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @property
    def is_free(self) -> bool:
        return self.current_plan == PlanId.FREE

