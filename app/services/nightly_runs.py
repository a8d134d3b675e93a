"""Fetch recent run history for the monitored nightly workflows."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from .gather import gather_settled
from .github_client import RUNS_PER_PAGE, list_workflow_runs_raw
from .nightly_models import GuideStatus, NightlyRun
from .nightly_registry import WorkflowDefinition

logger = logging.getLogger(__name__)

MAX_CONCURRENT_REQUESTS = 10


def parse_workflow_runs_payload(data: dict, workflow: WorkflowDefinition) -> list[NightlyRun]:
    """Normalize a GitHub workflow-runs payload into runs, most recent first."""
    runs: list[NightlyRun] = []
    for item in data.get("workflow_runs") or []:
        status = item.get("status", "")
        # Queued runs never started executing
        if status == "queued":
            continue
        runs.append(
            NightlyRun(
                id=int(item["id"]),
                status=status,
                conclusion=item.get("conclusion"),
                created_at=item.get("created_at", ""),
                updated_at=item.get("updated_at", ""),
                html_url=item.get("html_url", ""),
                run_number=int(item.get("run_number") or 0),
                event=item.get("event", ""),
                model=workflow.model,
                gpu_type=workflow.gpu_type,
                gpu_count=workflow.gpu_count,
            )
        )
    return runs[:RUNS_PER_PAGE]


async def fetch_runs(client: httpx.AsyncClient, workflow: WorkflowDefinition) -> list[NightlyRun]:
    """
    Fetch the most recent runs of one workflow.

    Args:
        client: Authenticated GitHub client
        workflow: Workflow to query

    Returns:
        Up to seven runs, most recent first. Empty when the workflow file
        does not exist in the repository yet.

    Raises:
        GitHubAPIError: If GitHub responds with a non-404 error status
    """
    data = await list_workflow_runs_raw(client, workflow.repo, workflow.workflow_file)
    if data is None:
        logger.info(
            "Workflow %s not found in %s, reporting no history",
            workflow.workflow_file,
            workflow.repo,
        )
        return []
    return parse_workflow_runs_payload(data, workflow)


async def fetch_all(
    client: httpx.AsyncClient,
    workflows: Sequence[WorkflowDefinition],
) -> list[GuideStatus]:
    """Fetch every workflow concurrently; a failing workflow contributes no runs."""
    outcomes = await gather_settled(
        [lambda wf=wf: fetch_runs(client, wf) for wf in workflows],
        limit=MAX_CONCURRENT_REQUESTS,
    )

    guides: list[GuideStatus] = []
    failed = 0
    for workflow, outcome in zip(workflows, outcomes):
        if not outcome.ok:
            failed += 1
            logger.warning(
                "Failed to fetch runs for %s/%s: %s",
                workflow.repo,
                workflow.workflow_file,
                outcome.error,
            )
        guides.append(GuideStatus.from_definition(workflow, outcome.value if outcome.ok else []))

    logger.info(
        "Fetched nightly workflow runs",
        extra={"workflows": len(workflows), "failed_workflows": failed},
    )
    return guides
