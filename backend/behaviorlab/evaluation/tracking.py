"""Braintrust experiment tracking.

Best-effort: every failure surfaces as TrackingError, which the orchestrator
logs and swallows. The SDK is synchronous, so calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog

from behaviorlab.config import settings
from behaviorlab.core.exceptions import TrackingError
from behaviorlab.evaluation.judge import format_transcript
from behaviorlab.evaluation.types import ScoringRubric, SimulationResult

logger = structlog.get_logger()


class BraintrustSession:
    """One Braintrust experiment, open for the duration of a behavior experiment."""

    def __init__(self, experiment: Any, test: ScoringRubric) -> None:
        self._experiment = experiment
        self._test = test

    async def log_result(self, result: SimulationResult) -> None:
        persona = result.persona
        try:
            await asyncio.to_thread(
                self._experiment.log,
                input={
                    "problem_description": self._test.problem_description,
                    "persona": {
                        "name": persona.name,
                        "role": persona.role,
                        "goal": persona.goal,
                        "context": persona.context,
                        "tone": persona.tone,
                    },
                },
                output=format_transcript(result.conversation),
                expected="Agent should exhibit correct behavior as described in the test",
                scores={"behavior_compliance": result.score},
                metadata={
                    "test_id": self._test.id,
                    "test_name": self._test.name,
                    "persona_id": result.persona_id,
                    "passed": result.passed,
                    "rationale": result.rationale,
                    "turn_count": len(result.conversation),
                },
            )
        except Exception as e:
            raise TrackingError(f"Failed to log result to Braintrust: {e}") from e

    async def finish(self) -> str | None:
        try:
            summary = await asyncio.to_thread(self._experiment.summarize)
        except Exception as e:
            raise TrackingError(f"Failed to summarize Braintrust experiment: {e}") from e
        return getattr(summary, "experiment_url", None) or None


class BraintrustTracker:
    def __init__(
        self,
        project_name: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self.project_name = project_name or settings.braintrust_project_name
        self.api_key = api_key or settings.braintrust_api_key

    async def start(self, test: ScoringRubric) -> BraintrustSession:
        try:
            import braintrust

            experiment = await asyncio.to_thread(
                braintrust.init,
                project=self.project_name,
                experiment=f"{test.name}-{time.time_ns() // 1_000_000}",
                api_key=self.api_key,
            )
        except Exception as e:
            raise TrackingError(f"Failed to init Braintrust experiment: {e}") from e

        logger.info("tracking_session_started", project=self.project_name, test_id=test.id)
        return BraintrustSession(experiment, test)
