from typing import Optional

from common.core.exceptions import NotFoundError
from packages.users.repositories.user_repository import UserRepository
from packages.users.models.domain.user import User
from common.core.otel_axiom_exporter import trace_span


class UserService:
    """Service for handling user operations."""

    def __init__(self):
        self.user_repo = UserRepository()

    @trace_span
    async def get_user(self, user_id: int) -> Optional[User]:
        """Get a user by ID."""
        return await self.user_repo.get(user_id)

    @trace_span
    async def get_user_or_raise(self, user_id: int) -> User:
        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user
