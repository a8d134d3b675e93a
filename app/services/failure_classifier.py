"""Classify failed nightly runs as GPU shortages or genuine test failures."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Union

import httpx

from .gather import gather_settled
from .github_client import list_run_jobs_raw
from .nightly_models import FAILURE_REASON_GPU, FAILURE_REASON_TEST, NightlyRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeuristicMatcher:
    """Match failed steps whose free-text name mentions GPU availability."""

    gpu_tokens: tuple[str, ...] = ("gpu",)
    availability_tokens: tuple[str, ...] = ("availab",)
    kind: Literal["heuristic"] = "heuristic"

    def matches(self, step_name: str) -> bool:
        lower = step_name.lower()
        return any(token in lower for token in self.gpu_tokens) and any(
            token in lower for token in self.availability_tokens
        )


@dataclass(frozen=True)
class StructuredSignal:
    """Match a dedicated availability-gate step by its exact name."""

    step_name: str
    kind: Literal["structured"] = "structured"

    def matches(self, step_name: str) -> bool:
        return step_name.strip().lower() == self.step_name.strip().lower()


ClassificationStrategy = Union[HeuristicMatcher, StructuredSignal]

DEFAULT_STRATEGY: ClassificationStrategy = HeuristicMatcher()


def classify_jobs(payload: dict, strategy: ClassificationStrategy = DEFAULT_STRATEGY) -> str:
    """Return the failure reason for a run given its jobs payload."""
    for job in payload.get("jobs") or []:
        for step in job.get("steps") or []:
            if step.get("conclusion") == "failure" and strategy.matches(step.get("name") or ""):
                return FAILURE_REASON_GPU
    return FAILURE_REASON_TEST


async def detect_failure_reason(
    client: httpx.AsyncClient,
    repo: str,
    run_id: int,
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> str:
    payload = await list_run_jobs_raw(client, repo, run_id)
    return classify_jobs(payload, strategy)


async def classify_failures(
    client: httpx.AsyncClient,
    repo: str,
    runs: Sequence[NightlyRun],
    strategy: ClassificationStrategy = DEFAULT_STRATEGY,
) -> None:
    """
    Set ``failure_reason`` on every failed run in place.

    A run whose job breakdown cannot be fetched or parsed is reported as a
    test failure; classification problems never propagate.
    """
    failed_runs = [run for run in runs if run.conclusion == "failure"]
    if not failed_runs:
        return

    outcomes = await gather_settled(
        [
            lambda run=run: detect_failure_reason(client, repo, run.id, strategy)
            for run in failed_runs
        ]
    )
    for run, outcome in zip(failed_runs, outcomes):
        if outcome.ok:
            run.failure_reason = outcome.value or FAILURE_REASON_TEST
        else:
            logger.warning(
                "Could not classify failed run %s in %s: %s", run.id, repo, outcome.error
            )
            run.failure_reason = FAILURE_REASON_TEST
