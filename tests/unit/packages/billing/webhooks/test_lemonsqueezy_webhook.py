import json
from unittest.mock import AsyncMock

import pytest

from common.core.config import settings
from common.core.exceptions import TransientStoreError
from packages.billing.models.domain.enums import PlanId
from packages.billing.routes.webhooks import get_subscription_state_machine
from packages.billing.webhooks.lemonsqueezy_webhook import (
    SIGNATURE_HEADER,
    compute_signature,
    verify_signature,
)
from packages.users.repositories.user_repository import UserRepository

WEBHOOK_URL = "/api/v1/webhooks/lemonsqueezy"


def event_body(event_name: str, subscription_id: str, user_id=None, **attributes) -> bytes:
    return json.dumps(
        {
            "meta": {
                "event_name": event_name,
                "custom_data": {"user_id": str(user_id)} if user_id else None,
            },
            "data": {
                "id": subscription_id,
                "type": "subscriptions",
                "attributes": {"status": "active", **attributes},
            },
        }
    ).encode()


def signed(body: bytes) -> dict[str, str]:
    return {
        SIGNATURE_HEADER: compute_signature(body, settings.lemon_squeezy_webhook_secret),
        "Content-Type": "application/json",
    }


class TestVerifySignature:
    def test_valid(self):
        body = b'{"hello": "world"}'
        assert verify_signature(body, compute_signature(body, "s3cret"), "s3cret") is True

    def test_tampered_body(self):
        signature = compute_signature(b"original", "s3cret")
        assert verify_signature(b"tampered", signature, "s3cret") is False

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature(self, signature):
        assert verify_signature(b"body", signature, "s3cret") is False

    def test_empty_secret_rejects_everything(self):
        body = b"body"
        assert verify_signature(body, compute_signature(body, ""), "") is False


class TestWebhookEndpoint:
    async def test_invalid_signature_is_400(self, client):
        body = event_body("subscription_created", "sub_1")

        response = await client.post(
            WEBHOOK_URL, content=body, headers={SIGNATURE_HEADER: "deadbeef"}
        )

        assert response.status_code == 400

    async def test_malformed_payload_is_400(self, client):
        body = b'{"meta": {}}'

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 400

    async def test_created_event_applied(self, client, free_user):
        body = event_body("subscription_created", "sub_web_1", user_id=free_user.id)

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 200
        assert response.json() == {"status": "applied", "event": "subscription_created"}
        user = await UserRepository().get(free_user.id)
        assert user.current_plan == PlanId.PLUS

    async def test_unknown_subscription_acknowledged(self, client):
        body = event_body("subscription_updated", "sub_missing")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    async def test_unknown_event_acknowledged(self, client):
        body = event_body("order_created", "sub_1")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "event": "order_created"}

    async def test_transient_failure_is_503(self, client):
        from api.main import app

        state_machine = AsyncMock()
        state_machine.apply_billing_event.side_effect = TransientStoreError("lock busy")
        app.dependency_overrides[get_subscription_state_machine] = lambda: state_machine
        body = event_body("subscription_expired", "sub_1")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"

    async def test_unexpected_failure_is_500(self, client):
        from api.main import app

        state_machine = AsyncMock()
        state_machine.apply_billing_event.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_subscription_state_machine] = lambda: state_machine
        body = event_body("subscription_expired", "sub_1")

        response = await client.post(WEBHOOK_URL, content=body, headers=signed(body))

        assert response.status_code == 500
