"""Integration test fixtures for the surgical report API.

Provides an async HTTP client and a sync TestClient (for WebSocket) over a
fresh app. Report sessions get scripted providers instead of the real
webhooks, and the in-memory registry is emptied after every test.
"""

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from surgical_report.api.app import create_app
from surgical_report.services import report


@pytest.fixture
def app():
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture
def providers(mock_gateway, transcriber, mock_suggester):
    """Route every new report to the test doubles."""
    with (
        patch("surgical_report.services.report.ValidationGateway", return_value=mock_gateway),
        patch("surgical_report.services.report.create_transcriber", return_value=transcriber),
        patch("surgical_report.services.report.create_suggester", return_value=mock_suggester),
    ):
        yield {"gateway": mock_gateway, "transcriber": transcriber, "suggester": mock_suggester}


@pytest.fixture
async def async_client(app, providers):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await report.cleanup()


@pytest.fixture
def test_client(app, providers):
    """Synchronous TestClient for WebSocket tests; lifespan closes reports."""
    with TestClient(app) as c:
        yield c
