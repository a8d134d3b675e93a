"""Pass-rate and trend statistics for nightly run histories."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from .nightly_models import GuideStatus, NightlyRun

RECENT_WINDOW = 3
MIN_RUNS_FOR_TREND = 4
TREND_THRESHOLD = 0.10


def _succeeded(run: NightlyRun) -> bool:
    return run.conclusion == "success"


def compute_pass_rate(runs: Iterable[NightlyRun]) -> int:
    """Percentage of completed runs that succeeded, rounded half-up."""
    completed = [run for run in runs if run.status == "completed"]
    if not completed:
        return 0
    passed = sum(1 for run in completed if _succeeded(run))
    return int(math.floor(100 * passed / len(completed) + 0.5))


def success_rate(runs: Sequence[NightlyRun]) -> float:
    if not runs:
        return 0.0
    return sum(1 for run in runs if _succeeded(run)) / len(runs)


def compute_trend(runs: Sequence[NightlyRun]) -> str:
    """Compare the three most recent runs against the older ones."""
    if len(runs) < MIN_RUNS_FOR_TREND:
        return "steady"

    recent = success_rate(runs[:RECENT_WINDOW])
    older = success_rate(runs[RECENT_WINDOW:])

    if recent - older > TREND_THRESHOLD:
        return "up"
    if older - recent > TREND_THRESHOLD:
        return "down"
    return "steady"


def latest_conclusion(runs: Sequence[NightlyRun]) -> str | None:
    if not runs:
        return None
    return runs[0].conclusion or runs[0].status


def has_in_progress_runs(guides: Iterable[GuideStatus]) -> bool:
    return any(run.status == "in_progress" for guide in guides for run in guide.runs)


def apply_guide_stats(guide: GuideStatus) -> GuideStatus:
    guide.pass_rate = compute_pass_rate(guide.runs)
    guide.trend = compute_trend(guide.runs)
    guide.latest_conclusion = latest_conclusion(guide.runs)
    return guide
