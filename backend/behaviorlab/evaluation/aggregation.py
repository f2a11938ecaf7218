"""Pure math: pass/fail policy and experiment summary statistics."""

from __future__ import annotations

import math

from behaviorlab.evaluation.types import ExperimentSummary, SimulationResult

DEFAULT_PASS_THRESHOLD = 0.7


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half up: 0.125 -> 0.13, 12.5 -> 13."""
    scale = 10**ndigits
    return math.floor(value * scale + 0.5) / scale


def pass_rate_percent(passed: int, total: int) -> int:
    return int(round_half_up(100 * passed / total)) if total else 0


def is_passing(score: float, threshold: float = DEFAULT_PASS_THRESHOLD) -> bool:
    return score >= threshold


def compute_summary(
    results: list[SimulationResult],
    duration_ms: int | None = None,
) -> ExperimentSummary:
    """Summary statistics over the surviving results.

    pass_rate is a whole percentage and avg_score has 2 decimals, both rounded
    half up; both are 0 when there are no results.
    """
    total = len(results)
    passed = sum(1 for r in results if r.passed)
    avg_score = sum(r.score for r in results) / total if total else 0.0

    return ExperimentSummary(
        total=total,
        passed=passed,
        failed=total - passed,
        pass_rate=pass_rate_percent(passed, total),
        avg_score=round_half_up(avg_score, 2),
        duration_ms=duration_ms,
    )
