from fastapi import APIRouter

from api.main import app
from common.core.exceptions import (
    InvariantViolationError,
    NotFoundError,
    TransientStoreError,
    UnknownPlanError,
    ValidationError,
)


class TestHealthEndpoints:
    async def test_health(self, client):
        response = await client.get("/api/v1/health/")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "halo-billing"}

    async def test_db_health(self, client):
        response = await client.get("/api/v1/health/db")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}

    async def test_healthz(self, client):
        response = await client.get("/healthz")
        assert response.status_code == 200


errors_router = APIRouter()


@errors_router.get("/_test/raise/{kind}")
async def raise_error(kind: str):
    raise {
        "not_found": NotFoundError("thing"),
        "validation": ValidationError("bad input"),
        "conflict": InvariantViolationError("two open meetings"),
        "transient": TransientStoreError("pool exhausted"),
        "unknown_plan": UnknownPlanError("gold"),
    }[kind]


app.include_router(errors_router)


class TestExceptionHandlers:
    async def test_not_found(self, client):
        response = await client.get("/_test/raise/not_found")
        assert response.status_code == 404

    async def test_validation(self, client):
        response = await client.get("/_test/raise/validation")

        assert response.status_code == 400
        assert response.json()["detail"] == "bad input"

    async def test_conflict(self, client):
        response = await client.get("/_test/raise/conflict")
        assert response.status_code == 409

    async def test_transient(self, client):
        response = await client.get("/_test/raise/transient")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"

    async def test_unknown_plan_is_500(self, client):
        response = await client.get("/_test/raise/unknown_plan")
        assert response.status_code == 500
