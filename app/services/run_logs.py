"""Fetch and cache truncated job logs for one nightly workflow run."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass

import httpx

from .gather import gather_settled
from .github_client import fetch_job_log_raw, list_run_jobs_raw
from .nightly_cache import CacheStore
from .nightly_errors import GitHubAPIError

logger = logging.getLogger(__name__)

MAX_LOG_BYTES = 200_000
MAX_LOG_FETCH_JOBS = 5
LOG_CACHE_TTL_S = 10 * 60
TRUNCATED_PREFIX = "...[truncated]\n"


@dataclass
class JobLog:
    """Name, conclusion and truncated log output for one job."""

    name: str
    conclusion: str
    log: str = ""


def truncate_log(data: bytes, max_bytes: int = MAX_LOG_BYTES) -> str:
    """Keep the tail of a log; failure details are at the end."""
    if len(data) > max_bytes:
        return TRUNCATED_PREFIX + data[-max_bytes:].decode("utf-8", errors="replace")
    return data.decode("utf-8", errors="replace")


def log_cache_key(repo: str, run_id: int) -> str:
    return f"nightly-e2e:logs:{repo}/{run_id}"


async def _fetch_job_log(client: httpx.AsyncClient, repo: str, job_id: int) -> str:
    try:
        data = await fetch_job_log_raw(client, repo, job_id, max_bytes=MAX_LOG_BYTES)
        return truncate_log(data)
    except GitHubAPIError as exc:
        return f"[GitHub returned {exc.status_code} for job logs]"
    except httpx.HTTPError as exc:
        return f"[error fetching log: {exc}]"


async def fetch_run_logs(client: httpx.AsyncClient, repo: str, run_id: int) -> list[JobLog]:
    """
    Fetch the jobs of a run and the logs of its failed jobs.

    Raises:
        GitHubAPIError: If the job list cannot be fetched
    """
    payload = await list_run_jobs_raw(client, repo, run_id)
    jobs = [
        JobLog(name=job.get("name", ""), conclusion=job.get("conclusion") or "")
        for job in payload.get("jobs") or []
    ]
    job_ids = [job.get("id") for job in payload.get("jobs") or []]

    failed = [(job, job_id) for job, job_id in zip(jobs, job_ids) if job.conclusion == "failure"]
    outcomes = await gather_settled(
        [lambda job_id=job_id: _fetch_job_log(client, repo, job_id) for _, job_id in failed],
        limit=MAX_LOG_FETCH_JOBS,
    )
    for (job, _), outcome in zip(failed, outcomes):
        job.log = outcome.value if outcome.ok else f"[{outcome.error}]"

    logger.info(
        "Fetched run logs",
        extra={"repo": repo, "run_id": run_id, "jobs": len(jobs), "failed_jobs": len(failed)},
    )
    return jobs


async def get_cached_run_logs(cache: CacheStore, repo: str, run_id: int) -> list[JobLog] | None:
    key = log_cache_key(repo, run_id)
    try:
        raw = await cache.backend.get(key)
    except Exception as exc:
        logger.warning("Log cache read failed for %s: %s", key, exc)
        return None
    if raw is None:
        return None
    try:
        data = json.loads(raw)
        if cache.now_ms() >= int(data["expiresAt"]):
            return None
        return [JobLog(**job) for job in data["jobs"]]
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning("Discarding undecodable log cache entry %s: %s", key, exc)
        return None


async def store_run_logs(cache: CacheStore, repo: str, run_id: int, jobs: list[JobLog]) -> bool:
    key = log_cache_key(repo, run_id)
    value = json.dumps(
        {
            "jobs": [asdict(job) for job in jobs],
            "expiresAt": cache.now_ms() + LOG_CACHE_TTL_S * 1000,
        }
    )
    try:
        await cache.backend.set(key, value)
    except Exception as exc:
        logger.warning("Log cache write failed for %s: %s", key, exc)
        return False
    return True
