"""Build the aggregated nightly E2E snapshot served by the status endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from .failure_classifier import DEFAULT_STRATEGY, ClassificationStrategy, classify_failures
from .github_client import create_github_client
from .nightly_cache import CacheStore
from .nightly_models import GuideStatus
from .nightly_registry import NIGHTLY_WORKFLOWS, WorkflowDefinition
from .nightly_runs import fetch_all
from .nightly_stats import apply_guide_stats

logger = logging.getLogger(__name__)


async def build_nightly_snapshot(
    client: httpx.AsyncClient,
    workflows: Sequence[WorkflowDefinition] = NIGHTLY_WORKFLOWS,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> list[GuideStatus]:
    """
    Fetch, classify and summarize every monitored workflow.

    Every run list is fetched before any classification starts. Guides keep
    the registry order.
    """
    guides = await fetch_all(client, workflows)

    await asyncio.gather(
        *(classify_failures(client, guide.repo, guide.runs, strategy) for guide in guides)
    )

    return [apply_guide_stats(guide) for guide in guides]


async def refresh_nightly_cache(
    token: str,
    cache: CacheStore,
    workflows: Sequence[WorkflowDefinition] = NIGHTLY_WORKFLOWS,
) -> bool:
    """Build a snapshot and write it to the cache; used to prewarm at startup."""
    async with create_github_client(token) as client:
        guides = await build_nightly_snapshot(client, workflows)
    return await cache.set(cache.build_entry(guides))
