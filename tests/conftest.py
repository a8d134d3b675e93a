"""Shared test fixtures and configuration."""
from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any, Dict, Generator, List
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing app
os.environ["GITHUB_TOKEN"] = "test_token_12345"
os.environ["GITHUB_API_URL"] = "https://api.github.test"
os.environ["NIGHTLY_CACHE_BACKEND"] = "memory"
os.environ.pop("NIGHTLY_PREWARM", None)

from app.main import create_app
from app.services import github_client
from app.services.nightly_cache import CacheStore, InMemoryBlobStore
from app.services.nightly_models import NightlyRun
from app.services.nightly_registry import WorkflowDefinition


class FakeGitHub:
    """Routes GitHub API paths to canned responses and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, Any] = {}
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def add(self, path: str, response: Any) -> None:
        """Register a response, a (status, json) tuple, an exception, or a callable."""
        self.routes[path] = response

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        if isinstance(route, tuple):
            status_code, body = route
            if isinstance(body, (bytes, str)):
                return httpx.Response(status_code, content=body)
            return httpx.Response(status_code, json=body)
        return route

    def client(self) -> httpx.AsyncClient:
        return github_client.create_github_client("test_token_12345", transport=self.transport)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def app():
    """Create a FastAPI app instance for testing."""
    return create_app()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def patched_github(fake_github: FakeGitHub) -> Generator[FakeGitHub, None, None]:
    """Route every GitHub client built by the HTTP layer through the fake."""
    real_create = github_client.create_github_client

    def _create(token: str, transport=None):
        return real_create(token, transport=fake_github.transport)

    with patch("app.routes.nightly.create_github_client", side_effect=_create):
        yield fake_github


@pytest.fixture
def memory_cache() -> CacheStore:
    return CacheStore(InMemoryBlobStore())


@pytest.fixture
def sample_workflow() -> WorkflowDefinition:
    return WorkflowDefinition(
        repo="llm-d/llm-d",
        workflow_file="nightly-e2e-test.yaml",
        guide="Inference Scheduling",
        acronym="IS",
        platform="OCP",
        model="Qwen3-32B",
        gpu_type="H100",
        gpu_count=2,
    )


@pytest.fixture
def make_run() -> Callable[..., NightlyRun]:
    """Build a run with sensible defaults."""
    counter = {"next": 1000}

    def _make(
        conclusion: str | None = "success",
        status: str = "completed",
        run_id: int | None = None,
    ) -> NightlyRun:
        counter["next"] += 1
        return NightlyRun(
            id=run_id or counter["next"],
            status=status,
            conclusion=conclusion if status == "completed" else None,
            created_at="2026-10-18T02:00:00Z",
            updated_at="2026-10-18T03:00:00Z",
            html_url=f"https://github.com/llm-d/llm-d/actions/runs/{run_id or counter['next']}",
            run_number=counter["next"],
            event="schedule",
            model="Qwen3-32B",
            gpu_type="H100",
            gpu_count=2,
        )

    return _make


def github_run_payload(
    run_id: int,
    status: str = "completed",
    conclusion: str | None = "success",
    run_number: int = 1,
) -> Dict[str, Any]:
    """Single entry of a GitHub ``workflow_runs`` array."""
    return {
        "id": run_id,
        "status": status,
        "conclusion": conclusion,
        "created_at": "2026-10-18T02:00:00Z",
        "updated_at": "2026-10-18T03:00:00Z",
        "html_url": f"https://github.com/llm-d/llm-d/actions/runs/{run_id}",
        "run_number": run_number,
        "event": "schedule",
    }


def jobs_payload(*steps: tuple[str, str | None]) -> Dict[str, Any]:
    """Jobs payload with one job holding the given (name, conclusion) steps."""
    return {
        "total_count": 1,
        "jobs": [
            {
                "id": 1,
                "name": "e2e",
                "conclusion": "failure",
                "steps": [
                    {"name": name, "status": "completed", "conclusion": conclusion, "number": i}
                    for i, (name, conclusion) in enumerate(steps, start=1)
                ],
            }
        ],
    }


@pytest.fixture
def run_payload() -> Callable[..., Dict[str, Any]]:
    return github_run_payload


@pytest.fixture
def make_jobs_payload() -> Callable[..., Dict[str, Any]]:
    return jobs_payload
