"""
Tests for error formatting, the request middleware and the health endpoints.
"""

import json

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError

from marketplace.middleware.validation import ValidationMiddleware
from marketplace.services.error_handler import ErrorHandlerService
from marketplace.utils.exceptions import (
    NotFoundError,
    PropertyIncompleteError,
    RateLimitExceededError,
    StepValidationError,
)
from tests.conftest import auth_headers, error_body

API = "/api/v1"


def _body(response) -> dict:
    return json.loads(response.body)


class TestErrorHandlerService:
    """Error envelope formatting."""

    def test_format_error_response(self):
        response = ErrorHandlerService.format_error_response("NOT_FOUND", "Gone", request_id="abc12345")

        assert response["error"]["code"] == "NOT_FOUND"
        assert response["error"]["message"] == "Gone"
        assert response["error"]["request_id"] == "abc12345"
        assert response["error"]["timestamp"].endswith("Z")
        assert "details" not in response["error"]

    def test_api_exception(self):
        response = ErrorHandlerService.handle_api_exception(NotFoundError("Property", "42"))

        assert response.status_code == 404
        body = _body(response)
        assert body["error"]["message"] == "Property not found with ID: 42"
        assert len(body["error"]["request_id"]) == 8

    def test_step_validation_details(self):
        response = ErrorHandlerService.handle_api_exception(
            StepValidationError("res_rent_rental", {"rentAmount": "Monthly Rent is required"})
        )

        assert response.status_code == 422
        assert _body(response)["error"]["details"] == [
            {"field": "rentAmount", "message": "Monthly Rent is required", "rule": "res_rent_rental"}
        ]

    def test_incomplete_property_details(self):
        error = PropertyIncompleteError(["res_rent_features"], has_images=True)
        assert error.field_errors == [{"field": "res_rent_features", "message": "Step is missing or empty"}]

    def test_rate_limit_header(self):
        response = ErrorHandlerService.handle_api_exception(RateLimitExceededError(30))

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"

    def test_validation_error_fields(self):
        response = ErrorHandlerService.handle_validation_error([
            {"loc": ("body", "steps", "res_rent_rental"), "msg": "Field required", "type": "missing", "input": None}
        ])

        details = _body(response)["error"]["details"]
        assert details[0]["field"] == "body -> steps -> res_rent_rental"
        assert details[0]["type"] == "missing"

    def test_integrity_error(self):
        error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.email"))
        response = ErrorHandlerService.handle_database_error(error)

        assert response.status_code == 409
        assert _body(response)["error"]["message"] == "Constraint violation: Duplicate value for unique field"

    def test_unexpected_error_hides_details(self):
        response = ErrorHandlerService.handle_unexpected_error(RuntimeError("secret stack"))

        assert response.status_code == 500
        assert "secret" not in _body(response)["error"]["message"]


class TestRequestMiddleware:
    """Request ids, content types and body size."""

    @pytest.mark.asyncio
    async def test_request_id_header(self, async_client: AsyncClient):
        response = await async_client.get("/")

        assert response.status_code == 200
        assert len(response.headers["X-Request-ID"]) == 8
        assert "X-Processing-Time" in response.headers

    @pytest.mark.asyncio
    async def test_error_carries_request_id(self, async_client: AsyncClient):
        response = await async_client.get(f"{API}/properties/code/ABCDEF")

        assert response.status_code == 404
        assert error_body(response)["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_unknown_route(self, async_client: AsyncClient):
        response = await async_client.get(f"{API}/houses")

        assert response.status_code == 404
        assert error_body(response)["code"] == "HTTP_404"

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, async_client: AsyncClient, test_owner):
        response = await async_client.post(
            f"{API}/properties",
            content=b"flow_type=residential_rent",
            headers={**auth_headers(test_owner), "Content-Type": "text/plain"},
        )

        assert response.status_code == 400
        assert "Unsupported content type" in error_body(response)["message"]

    @pytest.mark.asyncio
    async def test_malformed_json(self, async_client: AsyncClient, test_owner):
        response = await async_client.post(
            f"{API}/properties",
            content=b"{not json",
            headers={**auth_headers(test_owner), "Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert error_body(response)["code"] == "VALIDATION_ERROR"


def _limited_app(**middleware_options) -> FastAPI:
    app = FastAPI()
    app.add_middleware(ValidationMiddleware, enable_request_logging=False, **middleware_options)

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    @app.post("/api/echo")
    async def echo():
        return {"ok": True}

    return app


class TestMiddlewareLimits:
    """Rate limiting and size limits on a bare app."""

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        app = _limited_app(enable_rate_limiting=True, rate_limit_requests=2, rate_limit_window=60)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            assert (await client.get("/ping")).status_code == 200
            assert (await client.get("/ping")).status_code == 200
            limited = await client.get("/ping")

            other_client = await client.get("/ping", headers={"X-Forwarded-For": "10.0.0.9"})

        assert limited.status_code == 429
        assert error_body(limited)["code"] == "RATE_LIMIT_EXCEEDED"
        assert int(limited.headers["Retry-After"]) >= 1
        assert other_client.status_code == 200

    @pytest.mark.asyncio
    async def test_request_too_large(self):
        app = _limited_app(max_request_size=10)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/echo", json={"payload": "x" * 50})

        assert response.status_code == 400
        assert "exceeds maximum allowed size" in error_body(response)["message"]


class TestHealthEndpoints:

    @pytest.mark.asyncio
    async def test_root(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert response.json()["api_prefix"] == API

    @pytest.mark.asyncio
    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
