"""Shared nightly E2E service models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from .nightly_registry import WorkflowDefinition

FAILURE_REASON_GPU = "gpu_unavailable"
FAILURE_REASON_TEST = "test_failure"

FailureReason = Literal["gpu_unavailable", "test_failure"]
Trend = Literal["up", "down", "steady"]


@dataclass
class NightlyRun:
    """Single workflow run from the GitHub Actions API."""

    id: int
    status: str
    conclusion: str | None
    created_at: str
    updated_at: str
    html_url: str
    run_number: int
    event: str
    model: str
    gpu_type: str
    gpu_count: int
    failure_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "status": self.status,
            "conclusion": self.conclusion,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "htmlUrl": self.html_url,
            "runNumber": self.run_number,
            "model": self.model,
            "gpuType": self.gpu_type,
            "gpuCount": self.gpu_count,
            "event": self.event,
        }
        if self.failure_reason:
            data["failureReason"] = self.failure_reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NightlyRun:
        return cls(
            id=int(data["id"]),
            status=data["status"],
            conclusion=data.get("conclusion"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
            html_url=data.get("htmlUrl", ""),
            run_number=int(data.get("runNumber", 0)),
            event=data.get("event", ""),
            model=data.get("model", ""),
            gpu_type=data.get("gpuType", ""),
            gpu_count=int(data.get("gpuCount", 0)),
            failure_reason=data.get("failureReason", ""),
        )


@dataclass
class GuideStatus:
    """Runs and computed stats for a single monitored workflow."""

    guide: str
    acronym: str
    platform: str
    repo: str
    workflow_file: str
    model: str
    gpu_type: str
    gpu_count: int
    runs: list[NightlyRun] = field(default_factory=list)
    pass_rate: int = 0
    trend: str = "steady"
    latest_conclusion: str | None = None

    @classmethod
    def from_definition(
        cls, workflow: WorkflowDefinition, runs: list[NightlyRun] | None = None
    ) -> GuideStatus:
        return cls(
            guide=workflow.guide,
            acronym=workflow.acronym,
            platform=workflow.platform,
            repo=workflow.repo,
            workflow_file=workflow.workflow_file,
            model=workflow.model,
            gpu_type=workflow.gpu_type,
            gpu_count=workflow.gpu_count,
            runs=list(runs or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "guide": self.guide,
            "acronym": self.acronym,
            "platform": self.platform,
            "repo": self.repo,
            "workflowFile": self.workflow_file,
            "runs": [run.to_dict() for run in self.runs],
            "passRate": self.pass_rate,
            "trend": self.trend,
            "latestConclusion": self.latest_conclusion,
            "model": self.model,
            "gpuType": self.gpu_type,
            "gpuCount": self.gpu_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GuideStatus:
        return cls(
            guide=data["guide"],
            acronym=data.get("acronym", ""),
            platform=data.get("platform", ""),
            repo=data["repo"],
            workflow_file=data["workflowFile"],
            model=data.get("model", ""),
            gpu_type=data.get("gpuType", ""),
            gpu_count=int(data.get("gpuCount", 0)),
            runs=[NightlyRun.from_dict(run) for run in data.get("runs") or []],
            pass_rate=int(data.get("passRate", 0)),
            trend=data.get("trend", "steady"),
            latest_conclusion=data.get("latestConclusion"),
        )


@dataclass(frozen=True)
class CacheEntry:
    """Aggregated snapshot plus its absolute expiry (epoch milliseconds)."""

    guides: list[GuideStatus]
    cached_at: str
    expires_at: int

    def is_fresh(self, now_ms: int) -> bool:
        return now_ms < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "guides": [guide.to_dict() for guide in self.guides],
            "cachedAt": self.cached_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(
            guides=[GuideStatus.from_dict(guide) for guide in data.get("guides") or []],
            cached_at=data["cachedAt"],
            expires_at=int(data["expiresAt"]),
        )
