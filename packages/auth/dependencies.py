import hmac
from typing import Annotated, Optional
from fastapi import HTTPException, status, Header

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.models.domain.authenticated_user import AuthenticatedUser

logger = get_logger(__name__)


@trace_span
async def get_current_user(
    x_internal_token: Annotated[Optional[str], Header()] = None,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> AuthenticatedUser:
    """
    Resolve the calling user.

    End-user authentication happens at the gateway, which forwards the user
    id together with the shared internal token.
    """
    if not x_internal_token or not settings.internal_api_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Internal token missing",
        )

    if not hmac.compare_digest(x_internal_token, settings.internal_api_token):
        logger.warning("Rejected request with invalid internal token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal token",
        )

    if not x_user_id or not x_user_id.isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User id header missing or invalid",
        )

    return AuthenticatedUser(user_id=int(x_user_id))
