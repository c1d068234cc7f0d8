"""Tests for CORS configuration on the draft API."""

import pytest
from httpx import AsyncClient

from main import validate_cors_origins


class TestCORSConfiguration:
    @pytest.mark.asyncio
    async def test_cors_preflight_request(self, async_client: AsyncClient):
        response = await async_client.options(
            "/api/v1/drafts/role-1/cover_letter/generate",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        allowed = response.headers["Access-Control-Allow-Origin"]
        assert allowed == "http://localhost:5173"
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    @pytest.mark.asyncio
    async def test_cors_request_from_disallowed_origin(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/health", headers={"Origin": "http://evil.example"}
        )

        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers


def test_validate_cors_origins_drops_invalid_entries():
    assert validate_cors_origins(
        [
            "http://localhost:5173",
            "localhost:5173",
            "ftp://files.test",
            "https://app.test",
        ]
    ) == ["http://localhost:5173", "https://app.test"]
