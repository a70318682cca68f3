"""
Tests for the health and root endpoints.
"""

import pytest
from httpx import AsyncClient

from app.core.config import settings


@pytest.mark.asyncio
class TestHealth:
    async def test_health_reports_database(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["version"] == settings.VERSION
        assert "running" in body["scheduler"]

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.json() == {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/api/docs",
        }

    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["success"] is False
