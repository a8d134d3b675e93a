"""Catalog of the nightly E2E workflows shown on the status card."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WorkflowDefinition:
    """A GitHub Actions workflow to monitor."""

    repo: str
    workflow_file: str
    guide: str
    acronym: str
    platform: str
    model: str
    gpu_type: str
    gpu_count: int

    @property
    def key(self) -> tuple[str, str]:
        return self.repo, self.workflow_file


# Model/GPU metadata mirrors each workflow's YAML in GitHub Actions.
NIGHTLY_WORKFLOWS: tuple[WorkflowDefinition, ...] = (
    # OCP: H100 except WVA (A100) and SA (CPU)
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-inference-scheduling-ocp.yaml", "Inference Scheduling", "IS", "OCP", "Qwen3-32B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-pd-disaggregation-ocp.yaml", "PD Disaggregation", "PD", "OCP", "Qwen3-0.6B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-precise-prefix-cache-ocp.yaml", "Precise Prefix Cache", "PPC", "OCP", "Qwen3-32B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-simulated-accelerators.yaml", "Simulated Accelerators", "SA", "OCP", "Simulated", "CPU", 0),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-tiered-prefix-cache-ocp.yaml", "Tiered Prefix Cache", "TPC", "OCP", "Qwen3-0.6B", "H100", 1),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-wide-ep-lws-ocp.yaml", "Wide EP + LWS", "WEP", "OCP", "Qwen3-0.6B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-wva-ocp.yaml", "WVA", "WVA", "OCP", "Llama-3.1-8B", "A100", 2),
    WorkflowDefinition("llm-d/llm-d-benchmark", "ci-nighly-benchmark-ocp.yaml", "Benchmarking", "BM", "OCP", "opt-125m", "A100", 1),
    # GKE: L4
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-inference-scheduling-gke.yaml", "Inference Scheduling", "IS", "GKE", "Qwen3-32B", "L4", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-pd-disaggregation-gke.yaml", "PD Disaggregation", "PD", "GKE", "Qwen3-0.6B", "L4", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-wide-ep-lws-gke.yaml", "Wide EP + LWS", "WEP", "GKE", "Qwen3-0.6B", "L4", 2),
    WorkflowDefinition("llm-d/llm-d-benchmark", "ci-nighly-benchmark-gke.yaml", "Benchmarking", "BM", "GKE", "opt-125m", "L4", 1),
    # CKS: H100
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-inference-scheduling-cks.yaml", "Inference Scheduling", "IS", "CKS", "Qwen3-32B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-pd-disaggregation-cks.yaml", "PD Disaggregation", "PD", "CKS", "Qwen3-0.6B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-wide-ep-lws-cks.yaml", "Wide EP + LWS", "WEP", "CKS", "Qwen3-0.6B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d", "nightly-e2e-wva-cks.yaml", "WVA", "WVA", "CKS", "Llama-3.1-8B", "H100", 2),
    WorkflowDefinition("llm-d/llm-d-benchmark", "ci-nightly-benchmark-cks.yaml", "Benchmarking", "BM", "CKS", "opt-125m", "H100", 1),
)


def find_workflow(repo: str, workflow_file: str) -> WorkflowDefinition | None:
    for workflow in NIGHTLY_WORKFLOWS:
        if workflow.key == (repo, workflow_file):
            return workflow
    return None


def monitored_repos() -> frozenset[str]:
    """Repositories the server token is allowed to query."""
    return frozenset(workflow.repo for workflow in NIGHTLY_WORKFLOWS)
