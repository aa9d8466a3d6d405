"""
Shared fixtures for the prediction proxy tests.

Environment defaults are set before any test module imports
prediction_proxy.app.main, whose module-level app loads settings.
"""

import os
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("UPSTREAM_URL", "http://upstream.test")
os.environ.setdefault("UPSTREAM_KEY", "test-upstream-key")

from prediction_proxy.app.config import Settings  # noqa: E402
from prediction_proxy.app.main import create_app  # noqa: E402
from prediction_proxy.app.proxy.routes import get_upstream_client  # noqa: E402


@pytest.fixture
def mock_settings():
    """Create settings for testing, independent of the process environment"""
    return Settings(
        UPSTREAM_URL="http://flowise:3000",
        UPSTREAM_KEY="flowise-test-key",
        _env_file=None,
    )


@pytest.fixture
def upstream_calls() -> List[httpx.Request]:
    """Requests seen by the simulated upstream, in order"""
    return []


@pytest.fixture
def upstream_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Default upstream: a single SSE event. Override per test."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data: hello\n\n")
    return handler


@pytest.fixture
def app(mock_settings, upstream_handler, upstream_calls):
    """Create test FastAPI application with a mocked upstream client"""
    app = create_app(mock_settings)

    def recording_handler(request: httpx.Request) -> httpx.Response:
        request.read()
        upstream_calls.append(request)
        return upstream_handler(request)

    mock_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    app.dependency_overrides[get_upstream_client] = lambda: mock_client

    return app


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app)


@pytest.fixture
def valid_payload():
    return {
        "question": "What is the capital of France?",
        "userId": "user-123",
        "chatflowId": "chatflow-abc",
    }
