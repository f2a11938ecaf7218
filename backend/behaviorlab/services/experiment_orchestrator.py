"""Behavior experiment orchestrator.

Protocol for one run:
1. Start optional external tracking (non-fatal)
2. Generate personas sized to the rubric's simulation count (fatal)
3. Persist a ``running`` checkpoint with zero results
4. Fan out simulate-then-score per persona through a bounded pool; each
   pipeline yields a typed SimulationOutcome and never raises
5. Keep the successful results
6. Compute the summary from the survivors and elapsed time
7. Ask for a narrative summary and recommendations (non-fatal)
8. Mark ``completed`` and persist the final record

Results are only attached in the final write, so concurrent pipelines never
race on the persisted result list.
"""

from __future__ import annotations

import asyncio
import time

import structlog
from uuid_extensions import uuid7

from behaviorlab.core.exceptions import SimulationError
from behaviorlab.engine.conversation_simulator import ConversationSimulator
from behaviorlab.engine.environment import SimulationPolicy
from behaviorlab.engine.persona_synthesizer import PersonaSynthesizer, agent_context_from_nodes
from behaviorlab.engine.types import CancellationToken, OverridableNode, Persona, StateValues
from behaviorlab.evaluation.aggregation import compute_summary, is_passing
from behaviorlab.evaluation.insights import InsightsGenerator
from behaviorlab.evaluation.types import (
    Experiment,
    ExperimentStoreProtocol,
    ExperimentSummary,
    ExperimentTrackerProtocol,
    JudgeProtocol,
    ScoringRubric,
    SimulationOutcome,
    SimulationResult,
    TrackingSessionProtocol,
    utc_now_iso,
)

logger = structlog.get_logger()


class ExperimentOrchestrator:
    """Runs one behavior experiment end to end."""

    def __init__(
        self,
        synthesizer: PersonaSynthesizer,
        simulator: ConversationSimulator,
        judge: JudgeProtocol,
        store: ExperimentStoreProtocol,
        insights: InsightsGenerator | None = None,
        tracker: ExperimentTrackerProtocol | None = None,
        policy: SimulationPolicy | None = None,
    ) -> None:
        self.synthesizer = synthesizer
        self.simulator = simulator
        self.judge = judge
        self.store = store
        self.insights = insights
        self.tracker = tracker
        self.policy = policy or SimulationPolicy()

    async def run(
        self,
        agent_id: str,
        test: ScoringRubric,
        nodes: list[OverridableNode],
        state_values: StateValues,
        experiment_id: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Experiment:
        start = time.perf_counter()
        log = logger.bind(agent_id=agent_id, test_id=test.id)
        log.info("experiment_started", test_name=test.name, simulation_count=test.simulation_count)

        personas = await self.synthesizer.synthesize_personas(
            test.simulation_count,
            test.problem_description,
            test.persona_hint,
            agent_context_from_nodes(nodes),
        )
        log.info("personas_generated", count=len(personas))

        experiment = Experiment(
            id=experiment_id or str(uuid7()),
            agent_id=agent_id,
            test_id=test.id,
            test=test,
            summary=ExperimentSummary(total=len(personas)),
        )
        await self.store.save(agent_id, experiment)
        log = log.bind(experiment_id=experiment.id)
        log.info("experiment_checkpointed", status=experiment.status)

        tracking = await self._start_tracking(test)

        try:
            semaphore = asyncio.Semaphore(max(1, self.policy.max_concurrency))
            outcomes = await asyncio.gather(*[
                self._run_persona(
                    semaphore, index, persona, test, nodes, state_values, tracking, cancel_token,
                )
                for index, persona in enumerate(personas)
            ])

            results = [o.result for o in outcomes if o.result is not None]
            failures = [o for o in outcomes if not o.ok]
            log.info(
                "simulations_settled",
                succeeded=len(results),
                failed=len(failures),
                total=len(personas),
            )

            braintrust_url = await self._finish_tracking(tracking)

            duration_ms = int((time.perf_counter() - start) * 1000)
            summary = compute_summary(results, duration_ms)

            if self.insights is not None:
                try:
                    insights = await self.insights.generate(test, results)
                    summary.ai_summary = insights.summary
                    summary.recommendations = insights.recommendations
                except Exception as e:
                    log.warning("experiment_insights_failed", error=str(e))

            experiment.results = results
            experiment.summary = summary
            experiment.braintrust_url = braintrust_url
            experiment.status = "completed"
            experiment.completed_at = utc_now_iso()
            await self.store.save(agent_id, experiment)
        except Exception as e:
            log.error("experiment_failed", error=str(e))
            experiment.status = "failed"
            experiment.error_message = str(e)
            experiment.completed_at = utc_now_iso()
            await self.store.save(agent_id, experiment)
            raise

        log.info(
            "experiment_completed",
            pass_rate=experiment.summary.pass_rate,
            avg_score=experiment.summary.avg_score,
            duration_ms=experiment.summary.duration_ms,
        )
        return experiment

    async def _run_persona(
        self,
        semaphore: asyncio.Semaphore,
        index: int,
        persona: Persona,
        test: ScoringRubric,
        nodes: list[OverridableNode],
        state_values: StateValues,
        tracking: TrackingSessionProtocol | None,
        cancel_token: CancellationToken | None,
    ) -> SimulationOutcome:
        """Simulate then score one persona. Never raises an Exception."""
        async with semaphore:
            try:
                conversation = await self.simulator.simulate(
                    persona, nodes, state_values, cancel_token=cancel_token,
                )
                verdict = await self.judge.score(test.scorer_prompt, conversation, persona)
            except Exception as e:
                logger.warning(
                    "simulation_failed",
                    persona_id=persona.id,
                    persona=persona.name,
                    error=str(e),
                )
                return SimulationOutcome(
                    persona=persona,
                    error=SimulationError(
                        f"Simulation for {persona.name} failed: {e}",
                        persona_id=persona.id,
                        cause=e,
                    ),
                )

        result = SimulationResult(
            id=f"result-{time.time_ns() // 1_000_000}-{index}",
            persona_id=persona.id,
            persona=persona,
            conversation=conversation,
            score=verdict.score,
            passed=is_passing(verdict.score, self.policy.pass_threshold),
            rationale=verdict.rationale,
        )

        if tracking is not None:
            try:
                await tracking.log_result(result)
            except Exception as e:
                logger.warning("tracking_log_failed", persona_id=persona.id, error=str(e))

        logger.info("simulation_scored", persona_id=persona.id, score=result.score, passed=result.passed)
        return SimulationOutcome(persona=persona, result=result)

    async def _start_tracking(self, test: ScoringRubric) -> TrackingSessionProtocol | None:
        if self.tracker is None:
            return None
        try:
            return await self.tracker.start(test)
        except Exception as e:
            logger.warning("tracking_start_failed", test_id=test.id, error=str(e))
            return None

    @staticmethod
    async def _finish_tracking(tracking: TrackingSessionProtocol | None) -> str | None:
        if tracking is None:
            return None
        try:
            return await tracking.finish()
        except Exception as e:
            logger.warning("tracking_finish_failed", error=str(e))
            return None
