import pytest
from fastapi import HTTPException

from common.core.config import settings
from packages.auth.dependencies import get_current_user


class TestGetCurrentUser:
    async def test_valid_headers(self):
        user = await get_current_user(
            x_internal_token=settings.internal_api_token, x_user_id="42"
        )
        assert user.user_id == 42

    @pytest.mark.parametrize(
        "token,user_id",
        [
            (None, "42"),
            ("wrong-token", "42"),
            ("__valid__", None),
            ("__valid__", "abc"),
            ("__valid__", "-1"),
        ],
    )
    async def test_rejected(self, token, user_id):
        if token == "__valid__":
            token = settings.internal_api_token

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(x_internal_token=token, x_user_id=user_id)

        assert exc_info.value.status_code == 401

    async def test_unconfigured_token_rejects_all(self, monkeypatch):
        monkeypatch.setattr(settings, "internal_api_token", "")

        with pytest.raises(HTTPException):
            await get_current_user(x_internal_token="", x_user_id="42")
