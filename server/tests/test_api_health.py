"""Simple API health tests without database."""

import pytest
from httpx import ASGITransport, AsyncClient

from marketplace.core.config import Settings
from marketplace.main import create_app


@pytest.mark.asyncio
async def test_api_health_endpoint():
    """Test the liveness endpoint without database dependency."""
    app = create_app(Settings(environment="test"), use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["debug"] is False


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Test the metrics endpoint."""
    app = create_app(Settings(environment="test"), use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_openapi_docs():
    """Test that OpenAPI docs are available in development."""
    app = create_app(Settings(environment="development"), use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/docs")
        # Should be available in development mode
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_openapi_docs_hidden_outside_development():
    app = create_app(Settings(environment="production"), use_lifespan=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/docs")
        assert response.status_code == 404
