"""
Tests for security headers middleware.

WHY: Responses carry patient records, so browsers must be told not to
cache, frame or sniff them.
"""

import pytest
from httpx import AsyncClient

from app.core.config import settings


@pytest.mark.asyncio
class TestSecurityHeaders:
    """Headers on responses from the real application."""

    async def test_baseline_headers(self, client: AsyncClient):
        response = await client.get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "camera=()" in response.headers["Permissions-Policy"]

    async def test_hsts_outside_debug(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "DEBUG", False)
        response = await client.get("/")

        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]

    async def test_no_hsts_in_debug(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "DEBUG", True)
        response = await client.get("/")

        assert "Strict-Transport-Security" not in response.headers

    async def test_csp_locks_down_json_responses(self, client: AsyncClient):
        response = await client.get("/")

        csp = response.headers["Content-Security-Policy"]
        assert "default-src 'none'" in csp
        assert "frame-ancestors 'none'" in csp

    async def test_docs_keep_cdn_assets(self, client: AsyncClient):
        response = await client.get("/api/docs")

        assert "Content-Security-Policy" not in response.headers

    async def test_api_responses_are_not_cached(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/medicines", headers=admin_headers)

        assert response.status_code == 200
        assert "no-store" in response.headers["Cache-Control"]
        assert response.headers["Pragma"] == "no-cache"

    async def test_headers_on_error_responses(self, client: AsyncClient):
        response = await client.get("/api/appointments")

        assert response.status_code in (401, 403)
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "no-store" in response.headers["Cache-Control"]
