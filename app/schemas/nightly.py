"""Pydantic models for the nightly E2E status endpoints."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class NightlyRunInfo(BaseModel):
    id: int
    status: str
    conclusion: Optional[str] = None
    createdAt: str
    updatedAt: str
    htmlUrl: str
    runNumber: int
    failureReason: Optional[Literal["gpu_unavailable", "test_failure"]] = Field(
        default=None, description="Set only for failed runs"
    )
    model: str
    gpuType: str
    gpuCount: int
    event: str


class GuideStatusInfo(BaseModel):
    guide: str
    acronym: str
    platform: str
    repo: str
    workflowFile: str
    runs: List[NightlyRunInfo] = Field(default_factory=list, max_length=7)
    passRate: int = Field(..., ge=0, le=100)
    trend: Literal["up", "down", "steady"]
    latestConclusion: Optional[str] = None
    model: str
    gpuType: str
    gpuCount: int


class NightlyRunsResponse(BaseModel):
    guides: List[GuideStatusInfo]
    cachedAt: str
    fromCache: bool


class ErrorResponse(BaseModel):
    error: str
    hint: Optional[str] = None


class JobLogInfo(BaseModel):
    name: str
    conclusion: str
    log: str = ""


class RunLogsResponse(BaseModel):
    jobs: List[JobLogInfo]
