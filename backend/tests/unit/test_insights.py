"""Unit tests for the experiment insights generator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from behaviorlab.core.exceptions import TrackingError
from behaviorlab.evaluation.insights import InsightsGenerator
from behaviorlab.evaluation.types import ScoringRubric, SimulationResult

from conftest import make_conversation, make_persona, make_response


def _rubric() -> ScoringRubric:
    return ScoringRubric(
        id="test-1",
        name="Refund Mention",
        problem_description="Agent must mention the refund policy",
        scorer_prompt="Score {{conversation}}",
        persona_hint="",
        simulation_count=2,
    )


def _results() -> list[SimulationResult]:
    return [
        SimulationResult(
            id="r1", persona_id="p1", persona=make_persona(1), conversation=make_conversation(),
            score=0.9, passed=True, rationale="Mentioned refunds early",
        ),
        SimulationResult(
            id="r2", persona_id="p2", persona=make_persona(2), conversation=make_conversation(),
            score=0.2, passed=False, rationale="Never mentioned refunds",
        ),
    ]


class TestInsightsGenerator:
    @pytest.mark.asyncio
    async def test_parses_summary_and_recommendations(self, mock_llm: AsyncMock) -> None:
        mock_llm.chat.return_value = make_response(
            '{"summary": "Half passed.", "recommendations": ["Mention refunds in greeting"]}'
        )

        insights = await InsightsGenerator(mock_llm, model="test-model").generate(_rubric(), _results())

        assert insights.summary == "Half passed."
        assert insights.recommendations == ["Mention refunds in greeting"]

    @pytest.mark.asyncio
    async def test_prompt_includes_rationales(self, mock_llm: AsyncMock) -> None:
        mock_llm.chat.return_value = make_response('{"summary": "s", "recommendations": []}')

        await InsightsGenerator(mock_llm, model="test-model").generate(_rubric(), _results())

        prompt = mock_llm.chat.call_args.kwargs["messages"][0]["content"]
        assert "1/2 passed (50%)" in prompt
        assert "Never mentioned refunds" in prompt
        assert "Mentioned refunds early" in prompt

    @pytest.mark.asyncio
    async def test_unparsable_output_raises(self, mock_llm: AsyncMock) -> None:
        mock_llm.chat.return_value = make_response("")
        with pytest.raises(TrackingError):
            await InsightsGenerator(mock_llm, model="test-model").generate(_rubric(), _results())
