"""Narrative summary and recommendations for a finished experiment."""

from __future__ import annotations

import structlog

from behaviorlab.config import settings
from behaviorlab.core.exceptions import TrackingError
from behaviorlab.engine.json_output import parse_json_object
from behaviorlab.engine.types import LLMClientProtocol
from behaviorlab.evaluation.aggregation import pass_rate_percent
from behaviorlab.evaluation.types import ExperimentInsights, ScoringRubric, SimulationResult

logger = structlog.get_logger()

SAMPLE_PASSED_RATIONALES = 3

INSIGHTS_SYSTEM_PROMPT = """You are an expert AI agent evaluator. Analyze the results of a behavior test and provide:
1. A concise summary (2-3 sentences) of the overall performance
2. Specific, actionable recommendations to improve the agent's behavior

Be direct and specific. Focus on patterns in failures and concrete fixes."""


class InsightsGenerator:
    def __init__(
        self,
        llm_client: LLMClientProtocol,
        model: str | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.model = model or settings.insights_model

    async def generate(
        self,
        test: ScoringRubric,
        results: list[SimulationResult],
    ) -> ExperimentInsights:
        response = await self.llm_client.chat(
            model=self.model,
            messages=[{"role": "user", "content": self._build_prompt(test, results)}],
            system=INSIGHTS_SYSTEM_PROMPT,
            json_mode=True,
        )

        try:
            data = parse_json_object(response.content)
        except ValueError as e:
            raise TrackingError(f"Failed to generate experiment insights: {e}") from e

        recommendations = data.get("recommendations") or []
        if not isinstance(recommendations, list):
            recommendations = [str(recommendations)]

        return ExperimentInsights(
            summary=str(data.get("summary") or ""),
            recommendations=[str(r) for r in recommendations],
        )

    @staticmethod
    def _build_prompt(test: ScoringRubric, results: list[SimulationResult]) -> str:
        total = len(results)
        passed = [r for r in results if r.passed]
        failed = [r for r in results if not r.passed]
        avg_score = sum(r.score for r in results) / total if total else 0.0
        pass_rate = pass_rate_percent(len(passed), total)

        sections = [
            f"## Behavior Test: {test.name}",
            f"**Problem Being Tested:**\n{test.problem_description}",
            f"**Results:** {len(passed)}/{total} passed ({pass_rate}%)\n"
            f"**Average Score:** {avg_score:.2f}",
        ]

        if failed:
            lines = "\n".join(
                f"- {r.persona.name} ({r.persona.role}): {r.rationale}" for r in failed
            )
            sections.append(f"**Failed Test Rationales:**\n{lines}")

        if passed:
            lines = "\n".join(
                f"- {r.persona.name}: {r.rationale}" for r in passed[:SAMPLE_PASSED_RATIONALES]
            )
            sections.append(f"**Sample Passed Rationales:**\n{lines}")

        sections.append(
            "Provide your analysis as JSON:\n"
            '{\n    "summary": "Brief summary of performance...",\n'
            '    "recommendations": ["Specific recommendation 1", "Specific recommendation 2"]\n}'
        )
        return "\n\n".join(sections)
