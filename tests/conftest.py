"""Shared test fixtures."""

import os

# Settings has required secrets; seed them before anything imports config.settings.
os.environ.setdefault("WEBHOOK_APP_ID", "test-app-id")
os.environ.setdefault("WEBHOOK_APP_SECRET", "test-app-secret")
os.environ.setdefault("IDENTITY_JWT_SECRET", "test-identity-secret")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("MINT_DESTINATIONS", "treasury:0.6,artist:0.4")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.main import app  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints (lifespan not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
