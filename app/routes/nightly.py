"""Nightly E2E status HTTP routes."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from ..schemas.nightly import (
    ErrorResponse,
    GuideStatusInfo,
    JobLogInfo,
    NightlyRunsResponse,
    RunLogsResponse,
)
from ..services.github_client import create_github_client, get_github_token
from ..services.nightly import build_nightly_snapshot
from ..services.nightly_cache import CacheStore, get_write_timeout
from ..services.nightly_errors import GitHubAPIError, NightlyConfigurationError
from ..services.nightly_models import CacheEntry
from ..services.nightly_registry import monitored_repos
from ..services.run_logs import fetch_run_logs, get_cached_run_logs, store_run_logs

logger = logging.getLogger(__name__)

router = APIRouter(tags=["nightly-e2e"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}
# Freshness is managed by the server-side cache, not by HTTP caches.
NO_STORE_HEADERS = {"Cache-Control": "no-store"}

ERROR_RESPONSES = {
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def get_cache_store(request: Request) -> CacheStore:
    return request.app.state.nightly_cache


def _json_response(content: dict, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        content=content,
        status_code=status_code,
        headers={**CORS_HEADERS, **NO_STORE_HEADERS},
    )


def _error_response(status_code: int, error: str, hint: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, hint=hint).model_dump(exclude_none=True)
    return _json_response(body, status_code=status_code)


def _snapshot_response(entry: CacheEntry, from_cache: bool) -> JSONResponse:
    payload = NightlyRunsResponse(
        guides=[GuideStatusInfo.model_validate(guide.to_dict()) for guide in entry.guides],
        cachedAt=entry.cached_at,
        fromCache=from_cache,
    )
    return _json_response(payload.model_dump(exclude_unset=True))


def _parse_run_id(value: str | None) -> int:
    """Parse a run ID query value; anything that is not an integer becomes 0."""
    try:
        return int(value or "")
    except ValueError:
        return 0


def _preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)


@router.options("/runs", include_in_schema=False)
async def nightly_runs_preflight() -> Response:
    return _preflight()


@router.get("/runs", response_model=NightlyRunsResponse, responses=ERROR_RESPONSES)
async def get_nightly_runs(cache: CacheStore = Depends(get_cache_store)) -> JSONResponse:
    """
    Return aggregated nightly E2E workflow status.

    Served from cache while the cached snapshot is fresh (2 minutes when any
    run is in progress, 5 minutes otherwise).
    """
    try:
        token = get_github_token()
    except NightlyConfigurationError as exc:
        logger.error("Nightly status unavailable: %s", exc)
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), hint=exc.hint)

    cached = await cache.get()
    if cached is not None and cached.is_fresh(cache.now_ms()):
        return _snapshot_response(cached, from_cache=True)

    try:
        async with create_github_client(token) as client:
            guides = await build_nightly_snapshot(client)
    except Exception as exc:
        logger.exception("Failed to build nightly E2E snapshot")
        return _error_response(
            status.HTTP_502_BAD_GATEWAY, f"Failed to fetch nightly E2E data: {exc}"
        )

    entry = cache.build_entry(guides)
    await cache.wait_for_write(cache.set(entry), timeout=get_write_timeout())
    return _snapshot_response(entry, from_cache=False)


@router.options("/run-logs", include_in_schema=False)
async def run_logs_preflight() -> Response:
    return _preflight()


@router.get("/run-logs", response_model=RunLogsResponse, responses=ERROR_RESPONSES)
async def get_run_logs(
    repo: str | None = Query(None, description="Repository, e.g. llm-d/llm-d"),
    run_id_param: str | None = Query(None, alias="runId", description="Workflow run ID"),
    cache: CacheStore = Depends(get_cache_store),
) -> JSONResponse:
    """Return job names, conclusions and truncated logs of failed jobs for one run."""
    run_id = _parse_run_id(run_id_param)
    if not repo or run_id <= 0:
        return _error_response(
            status.HTTP_400_BAD_REQUEST, "repo and runId query params are required"
        )
    if repo not in monitored_repos():
        return _error_response(status.HTTP_400_BAD_REQUEST, f"Repository {repo} is not monitored")

    try:
        token = get_github_token()
    except NightlyConfigurationError as exc:
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), hint=exc.hint)

    jobs = await get_cached_run_logs(cache, repo, run_id)
    if jobs is None:
        try:
            async with create_github_client(token) as client:
                jobs = await fetch_run_logs(client, repo, run_id)
        except GitHubAPIError as exc:
            upstream_status = exc.status_code or status.HTTP_502_BAD_GATEWAY
            return _error_response(upstream_status, str(exc))
        except httpx.HTTPError as exc:
            return _error_response(status.HTTP_502_BAD_GATEWAY, f"Failed to fetch run logs: {exc}")
        await store_run_logs(cache, repo, run_id, jobs)

    payload = RunLogsResponse(
        jobs=[JobLogInfo(name=job.name, conclusion=job.conclusion, log=job.log) for job in jobs]
    )
    return _json_response(payload.model_dump())
