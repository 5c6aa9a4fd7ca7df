from fastapi import APIRouter, Depends

from api.v1.routes import (
    health,
)
from packages.auth.dependencies import get_current_user
from packages.billing.routes import billing, webhooks, plans
from packages.meetings.routes import meetings

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (no auth - signature verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Plans (no auth - public pricing info)
api_router.include_router(plans.router, prefix="/billing", tags=["billing"])

# Protected routes (internal token + user id from the gateway)
api_router.include_router(
    billing.router,
    prefix="/billing",
    tags=["billing"],
    dependencies=[Depends(get_current_user)],
)
api_router.include_router(
    meetings.router,
    prefix="/meetings",
    tags=["meetings"],
    dependencies=[Depends(get_current_user)],
)
