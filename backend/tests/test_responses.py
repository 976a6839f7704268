"""
Tests for the response envelope and exception handlers.
"""
import pytest
from fastapi import FastAPI

from httpx import AsyncClient, ASGITransport

from neuraslide.infrastructure.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
    register_exception_handlers,
)
from neuraslide.infrastructure.responses import build_envelope


class TestEnvelope:

    def test_success_has_no_errors(self):
        body = build_envelope(True, "ok", data={"a": 1}, errors=["ignored"])
        assert body["success"] is True
        assert body["data"] == {"a": 1}
        assert "errors" not in body
        assert body["timestamp"].endswith("Z")

    def test_failure_has_no_data(self):
        body = build_envelope(False, "Validation failed", data={"a": 1}, errors=["Name is required"])
        assert body["success"] is False
        assert body["errors"] == ["Name is required"]
        assert "data" not in body

    def test_success_without_data(self):
        body = build_envelope(True, "Logout successful")
        assert set(body) == {"success", "message", "timestamp"}


@pytest.fixture
async def error_client():
    """Throwaway app wired with the production handlers."""
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/invalid")
    async def invalid():
        raise ValidationError(["Name is required"])

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Automation not found")

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("User with this email already exists")

    @app.get("/upstream")
    async def upstream():
        raise ExternalServiceError("OpenAI")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("duplicate key value violates unique constraint users_pkey")

    @app.get("/typed")
    async def typed(limit: int):
        return {"limit": limit}

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestExceptionHandlers:

    @pytest.mark.asyncio
    async def test_validation_error(self, error_client):
        response = await error_client.get("/invalid")
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert body["errors"] == ["Name is required"]

    @pytest.mark.asyncio
    async def test_classified_errors_pass_through(self, error_client):
        assert (await error_client.get("/missing")).status_code == 404
        response = await error_client.get("/conflict")
        assert response.status_code == 409
        assert response.json()["message"] == "User with this email already exists"

    @pytest.mark.asyncio
    async def test_upstream_failure(self, error_client):
        response = await error_client.get("/upstream")
        assert response.status_code == 500
        assert response.json()["message"] == "OpenAI is temporarily unavailable"

    @pytest.mark.asyncio
    async def test_unhandled_error_is_generic(self, error_client):
        response = await error_client.get("/boom")
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Internal server error"
        assert "users_pkey" not in response.text

    @pytest.mark.asyncio
    async def test_request_parsing_error(self, error_client):
        response = await error_client.get("/typed", params={"limit": "many"})
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    @pytest.mark.asyncio
    async def test_unknown_route(self, error_client):
        response = await error_client.get("/nowhere")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Route GET /nowhere not found"
