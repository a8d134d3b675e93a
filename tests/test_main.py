"""Tests for the main FastAPI application."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.services.nightly_cache import CacheStore, InMemoryBlobStore, S3BlobStore


def test_create_app_success():
    """Test that create_app creates a valid FastAPI instance."""
    from app.main import create_app

    app = create_app()

    assert isinstance(app, FastAPI)
    assert app.title == "Nightly E2E Status"
    assert app.version == "1.0.0"
    assert isinstance(app.state.nightly_cache, CacheStore)
    assert isinstance(app.state.nightly_cache.backend, InMemoryBlobStore)


def test_create_app_with_s3_cache():
    from app.main import create_app

    with patch.dict(
        os.environ, {"NIGHTLY_CACHE_BACKEND": "s3", "NIGHTLY_CACHE_BUCKET": "status-cache"}
    ):
        app = create_app()

    assert isinstance(app.state.nightly_cache.backend, S3BlobStore)


def test_create_app_invalid_cache_configuration():
    from app.main import create_app

    with patch.dict(os.environ, {"NIGHTLY_CACHE_BACKEND": "s3", "NIGHTLY_CACHE_BUCKET": ""}):
        with pytest.raises(RuntimeError, match="Invalid cache configuration"):
            create_app()


def test_health_endpoint(client: TestClient):
    """Test the /health endpoint returns correct response."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "timestamp" in data


def test_nightly_router_included(client: TestClient):
    """Test that the nightly router is included with correct prefix."""
    assert client.options("/api/nightly-e2e/runs").status_code == 204
    assert client.options("/api/nightly-e2e/run-logs").status_code == 204


def test_unknown_route_is_404(client: TestClient):
    response = client.get("/nonexistent")
    assert response.status_code == 404


def test_prewarm_runs_on_startup_when_enabled():
    from app.main import create_app

    with patch.dict(os.environ, {"NIGHTLY_PREWARM": "true"}):
        with patch("app.main.refresh_nightly_cache", new_callable=AsyncMock) as mock_refresh:
            app = create_app()
            with TestClient(app) as test_client:
                test_client.get("/health")

    mock_refresh.assert_awaited_once()
    assert mock_refresh.call_args.args[1] is app.state.nightly_cache


def test_prewarm_disabled_by_default():
    from app.main import create_app

    with patch("app.main.refresh_nightly_cache", new_callable=AsyncMock) as mock_refresh:
        with TestClient(create_app()) as test_client:
            test_client.get("/health")

    mock_refresh.assert_not_called()


def test_prewarm_failure_does_not_break_startup():
    from app.main import create_app

    with patch.dict(os.environ, {"NIGHTLY_PREWARM": "1"}):
        with patch(
            "app.main.refresh_nightly_cache",
            new_callable=AsyncMock,
            side_effect=RuntimeError("github down"),
        ):
            with TestClient(create_app()) as test_client:
                assert test_client.get("/health").status_code == 200
