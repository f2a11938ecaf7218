"""Unit tests for pass/fail policy and summary statistics."""

from __future__ import annotations

from behaviorlab.evaluation.aggregation import (
    compute_summary,
    is_passing,
    pass_rate_percent,
    round_half_up,
)
from behaviorlab.evaluation.types import SimulationResult

from conftest import make_conversation, make_persona


def _result(index: int, score: float) -> SimulationResult:
    return SimulationResult(
        id=f"result-{index}",
        persona_id=f"persona-test-{index}",
        persona=make_persona(index),
        conversation=make_conversation(),
        score=score,
        passed=is_passing(score),
        rationale="r",
    )


class TestIsPassing:
    def test_threshold_is_inclusive(self) -> None:
        assert is_passing(0.70)
        assert not is_passing(0.699999)

    def test_custom_threshold(self) -> None:
        assert is_passing(0.5, threshold=0.5)
        assert not is_passing(0.9, threshold=0.95)


class TestComputeSummary:
    def test_mixed_results(self) -> None:
        results = [_result(i, s) for i, s in enumerate([0.9, 0.3, 0.8, 0.71, 0.5])]

        summary = compute_summary(results, duration_ms=1234)

        assert summary.total == 5
        assert summary.passed == 3
        assert summary.failed == 2
        assert summary.pass_rate == 60
        assert summary.avg_score == 0.64
        assert summary.duration_ms == 1234

    def test_empty_results(self) -> None:
        summary = compute_summary([])
        assert summary.total == 0
        assert summary.pass_rate == 0
        assert summary.avg_score == 0.0

    def test_pass_rate_is_whole_percentage(self) -> None:
        results = [_result(0, 0.9), _result(1, 0.1), _result(2, 0.1)]
        assert compute_summary(results).pass_rate == 33

    def test_counts_add_up(self) -> None:
        results = [_result(i, i / 10) for i in range(11)]
        summary = compute_summary(results)
        assert summary.passed + summary.failed == summary.total == 11


class TestRoundingHalfUp:
    def test_pass_rate_half_rounds_up(self) -> None:
        results = [_result(0, 0.9)] + [_result(i, 0.1) for i in range(1, 8)]
        assert compute_summary(results).pass_rate == 13

    def test_avg_score_half_rounds_up(self) -> None:
        results = [_result(0, 1.0)] + [_result(i, 0.0) for i in range(1, 8)]
        assert compute_summary(results).avg_score == 0.13

    def test_round_half_up(self) -> None:
        assert round_half_up(12.5) == 13
        assert round_half_up(0.125, 2) == 0.13
        assert pass_rate_percent(0, 0) == 0
