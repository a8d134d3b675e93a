"""Tests for GPU-availability failure classification."""

from __future__ import annotations

import httpx
import pytest

from app.services.failure_classifier import (
    HeuristicMatcher,
    StructuredSignal,
    classify_failures,
    classify_jobs,
)
from app.services.nightly_models import FAILURE_REASON_GPU, FAILURE_REASON_TEST


def test_classify_jobs_gpu_step_failed(make_jobs_payload):
    payload = make_jobs_payload(("Checkout", "success"), ("Check GPU availability", "failure"))
    assert classify_jobs(payload) == FAILURE_REASON_GPU


def test_classify_jobs_is_case_insensitive(make_jobs_payload):
    payload = make_jobs_payload(("WAIT FOR gpu AVAILABLE", "failure"))
    assert classify_jobs(payload) == FAILURE_REASON_GPU


def test_classify_jobs_gpu_step_passed_other_step_failed(make_jobs_payload):
    payload = make_jobs_payload(("Check GPU availability", "success"), ("Run e2e tests", "failure"))
    assert classify_jobs(payload) == FAILURE_REASON_TEST


def test_classify_jobs_needs_both_tokens(make_jobs_payload):
    assert classify_jobs(make_jobs_payload(("Allocate GPU", "failure"))) == FAILURE_REASON_TEST
    assert classify_jobs(make_jobs_payload(("Check node availability", "failure"))) == FAILURE_REASON_TEST


def test_classify_jobs_empty_payload():
    assert classify_jobs({}) == FAILURE_REASON_TEST
    assert classify_jobs({"jobs": [{"steps": None}]}) == FAILURE_REASON_TEST


def test_heuristic_matcher_custom_tokens():
    matcher = HeuristicMatcher(gpu_tokens=("accelerator",), availability_tokens=("capacity",))
    assert matcher.kind == "heuristic"
    assert matcher.matches("Accelerator capacity gate")
    assert not matcher.matches("Check GPU availability")


def test_structured_signal_matches_exact_step(make_jobs_payload):
    strategy = StructuredSignal(step_name="gpu-availability-gate")
    assert strategy.kind == "structured"
    assert classify_jobs(make_jobs_payload(("GPU-Availability-Gate", "failure")), strategy) == FAILURE_REASON_GPU
    assert (
        classify_jobs(make_jobs_payload(("Check GPU availability", "failure")), strategy)
        == FAILURE_REASON_TEST
    )


@pytest.mark.asyncio
async def test_classify_failures_only_fetches_failed_runs(fake_github, make_run, make_jobs_payload):
    gpu_run = make_run("failure", run_id=1)
    test_run = make_run("failure", run_id=2)
    passed = make_run("success", run_id=3)
    running = make_run(status="in_progress", run_id=4)

    fake_github.add(
        "/repos/llm-d/llm-d/actions/runs/1/jobs",
        (200, make_jobs_payload(("Check GPU availability", "failure"))),
    )
    fake_github.add(
        "/repos/llm-d/llm-d/actions/runs/2/jobs",
        (200, make_jobs_payload(("Run tests", "failure"))),
    )

    async with fake_github.client() as client:
        await classify_failures(client, "llm-d/llm-d", [gpu_run, test_run, passed, running])

    assert gpu_run.failure_reason == FAILURE_REASON_GPU
    assert test_run.failure_reason == FAILURE_REASON_TEST
    assert passed.failure_reason == ""
    assert running.failure_reason == ""
    assert sorted(fake_github.paths()) == [
        "/repos/llm-d/llm-d/actions/runs/1/jobs",
        "/repos/llm-d/llm-d/actions/runs/2/jobs",
    ]


@pytest.mark.asyncio
async def test_classify_failures_defaults_on_secondary_errors(fake_github, make_run):
    http_error = make_run("failure", run_id=10)
    network_error = make_run("failure", run_id=11)
    malformed = make_run("failure", run_id=12)

    fake_github.add("/repos/llm-d/llm-d/actions/runs/10/jobs", (500, {"message": "oops"}))
    fake_github.add("/repos/llm-d/llm-d/actions/runs/11/jobs", httpx.ConnectError("unreachable"))
    fake_github.add("/repos/llm-d/llm-d/actions/runs/12/jobs", (200, b"not json"))

    async with fake_github.client() as client:
        await classify_failures(client, "llm-d/llm-d", [http_error, network_error, malformed])

    assert http_error.failure_reason == FAILURE_REASON_TEST
    assert network_error.failure_reason == FAILURE_REASON_TEST
    assert malformed.failure_reason == FAILURE_REASON_TEST


@pytest.mark.asyncio
async def test_classify_failures_no_failed_runs_makes_no_calls(fake_github, make_run):
    async with fake_github.client() as client:
        await classify_failures(client, "llm-d/llm-d", [make_run("success")])
    assert fake_github.requests == []
