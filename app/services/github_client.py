"""Low-level HTTP calls to the GitHub Actions API."""

from __future__ import annotations

import logging
import os

import httpx

from .nightly_errors import GitHubAPIError, NightlyConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
RUNS_PER_PAGE = 7
JOBS_PER_PAGE = 30

TOKEN_HINT = (
    "Set GITHUB_TOKEN to a token with read access to GitHub Actions "
    "(actions:read) for the monitored repositories."
)


def get_github_token() -> str:
    token = os.getenv("GITHUB_TOKEN")
    if not token:
        raise NightlyConfigurationError(
            "Missing required environment variable: GITHUB_TOKEN", hint=TOKEN_HINT
        )
    return token


def _get_api_url() -> str:
    return (os.getenv("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL).rstrip("/")


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }


def masked_headers(headers: dict[str, str]) -> dict[str, str]:
    """Mask sensitive headers before logging."""
    masked = dict(headers)
    if "Authorization" in masked:
        masked["Authorization"] = "Bearer ***"
    return masked


def create_github_client(
    token: str, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Build a pooled client shared by every call of one snapshot build."""
    api_url = _get_api_url()
    headers = _headers(token)
    logger.debug("Creating GitHub client: base_url=%s headers=%s", api_url, masked_headers(headers))
    return httpx.AsyncClient(
        base_url=api_url,
        headers=headers,
        timeout=httpx.Timeout(30),
        follow_redirects=True,
        transport=transport,
    )


async def list_workflow_runs_raw(
    client: httpx.AsyncClient,
    repo: str,
    workflow_file: str,
    per_page: int = RUNS_PER_PAGE,
) -> dict | None:
    """Return the runs payload, or None when the workflow does not exist yet."""
    url = f"/repos/{repo}/actions/workflows/{workflow_file}/runs"
    response = await client.get(url, params={"per_page": per_page})

    if response.status_code == 404:
        return None
    if response.is_error:
        raise GitHubAPIError(
            f"GitHub API returned {response.status_code} for {repo}/{workflow_file}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
    return response.json()


async def list_run_jobs_raw(
    client: httpx.AsyncClient,
    repo: str,
    run_id: int,
    per_page: int = JOBS_PER_PAGE,
) -> dict:
    url = f"/repos/{repo}/actions/runs/{run_id}/jobs"
    response = await client.get(url, params={"per_page": per_page})

    if response.is_error:
        raise GitHubAPIError(
            f"GitHub API returned {response.status_code}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
    return response.json()


async def fetch_job_log_raw(
    client: httpx.AsyncClient, repo: str, job_id: int, max_bytes: int | None = None
) -> bytes:
    """
    Download a job's plain-text log, following the redirect to the signed URL.

    With ``max_bytes`` set, only the last ``max_bytes + 1`` bytes are kept, so
    callers can still tell that the log was longer than the limit.
    """
    async with client.stream("GET", f"/repos/{repo}/actions/jobs/{job_id}/logs") as response:
        if response.is_error:
            await response.aread()
            raise GitHubAPIError(
                f"GitHub returned {response.status_code} for job logs",
                status_code=response.status_code,
                body=response.text,
            )

        tail = bytearray()
        async for chunk in response.aiter_bytes():
            tail.extend(chunk)
            if max_bytes is not None and len(tail) > 2 * max_bytes:
                del tail[: len(tail) - max_bytes - 1]

    if max_bytes is not None and len(tail) > max_bytes + 1:
        del tail[: len(tail) - max_bytes - 1]
    return bytes(tail)
