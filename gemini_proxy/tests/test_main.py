"""
Tests for the application factory: lifespan, system endpoints, CORS and
the global exception handler.
"""

import importlib
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from gemini_proxy import __version__
from gemini_proxy.config import Settings
from gemini_proxy.main import create_app, setup_logging
from gemini_proxy.proxy.routes import get_upstream_client


@pytest.fixture
def app_settings():
    return Settings(_env_file=None, GEMINI_API_KEY="test-api-key", UPSTREAM_TIMEOUT_SECONDS=15)


@pytest.fixture
def app():
    return create_app()


def test_health_reports_api_key_configured(app, app_settings):
    with patch("gemini_proxy.main.get_settings", return_value=app_settings):
        response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "service": "gemini-proxy",
        "version": __version__,
        "api_key_configured": True,
    }


def test_health_reports_missing_api_key(app):
    settings = Settings(_env_file=None, GEMINI_API_KEY=None)

    with patch("gemini_proxy.main.get_settings", return_value=settings):
        response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json()["api_key_configured"] is False


def test_root_lists_endpoints(app):
    response = TestClient(app).get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "gemini-proxy"
    assert data["endpoints"]["proxy"] == "/api/gemini-proxy"


def test_lifespan_manages_upstream_client(app, app_settings):
    """Test that the shared client is created on startup and closed on shutdown"""
    with patch("gemini_proxy.main.get_settings", return_value=app_settings):
        with TestClient(app):
            upstream_client = app.state.app_state.upstream_client
            assert isinstance(upstream_client, httpx.AsyncClient)
            assert upstream_client.timeout.read == 15
            assert app.state.app_state.settings is app_settings

    assert upstream_client.is_closed
    assert app.state.app_state.upstream_client is None


def test_global_exception_handler(app):
    """Test that unhandled errors outside the proxy get the same error shape"""
    @app.get("/boom")
    async def boom():
        raise RuntimeError("boom")

    response = TestClient(app, raise_server_exceptions=False).get("/boom")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal Server Error", "error": "boom"}


def test_cors_enabled_when_origins_configured(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://app.example.com, http://localhost:3000")
    app = create_app()

    response = TestClient(app).options(
        "/api/gemini-proxy",
        headers={
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://app.example.com"


def test_cors_disabled_by_default(monkeypatch):
    monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)
    app = create_app()

    response = TestClient(app).get("/", headers={"Origin": "https://app.example.com"})

    assert "access-control-allow-origin" not in response.headers


# ============================================================================
# Startup Resilience Tests
# ============================================================================

def test_setup_logging_silences_httpx_request_log():
    setup_logging("DEBUG")

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_create_app_configures_logging(monkeypatch):
    """Logging must be set up even when the runtime never runs the lifespan"""
    monkeypatch.setenv("LOG_LEVEL", "debug")

    with patch("gemini_proxy.main.setup_logging") as mocked:
        create_app()

    mocked.assert_called_once_with("DEBUG")


def test_module_imports_with_invalid_settings(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "verbose")

    main_module = importlib.import_module("gemini_proxy.main")
    main_module = importlib.reload(main_module)

    response = TestClient(main_module.app).get("/api/gemini-proxy")
    assert response.status_code == 405


def test_invalid_settings_reported_per_request(monkeypatch):
    """Invalid env values surface as the proxy's JSON 500, not a startup crash"""
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    monkeypatch.setenv("GEMINI_API_KEY", "test-api-key")
    upstream_client = AsyncMock()

    app = create_app()
    app.dependency_overrides[get_upstream_client] = lambda: upstream_client
    client = TestClient(app)

    not_allowed = client.get("/api/gemini-proxy")
    assert not_allowed.status_code == 405
    assert not_allowed.json() == {"message": "Method Not Allowed"}

    response = client.post(
        "/api/gemini-proxy",
        json={"model": "gemini-pro", "payload": {"contents": []}},
    )
    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Internal Server Error"
    assert "LOG_LEVEL" in body["error"]
    upstream_client.post.assert_not_called()


def test_lifespan_with_invalid_settings(monkeypatch):
    monkeypatch.setenv("UPSTREAM_TIMEOUT_SECONDS", "not-a-number")
    app = create_app()

    with TestClient(app):
        assert app.state.app_state.settings is None
        assert isinstance(app.state.app_state.upstream_client, httpx.AsyncClient)

    assert app.state.app_state.upstream_client is None
