"""Celery tasks for running behavior experiments asynchronously."""

from __future__ import annotations

import asyncio
from typing import Any

import redis.asyncio as redis
import structlog

from behaviorlab.config import settings
from behaviorlab.core.logging import setup_logging
from behaviorlab.db.session import async_session_factory, engine
from behaviorlab.services.cancellation import RedisCancellationToken
from behaviorlab.services.experiment_service import BehaviorExperimentService
from behaviorlab.workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(bind=True, name="run_behavior_experiment")
def run_behavior_experiment(
    self: object,
    agent_id: str,
    test_id: str,
    experiment_id: str,
    nodes: list[dict[str, Any]] | None = None,
    state_overrides: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Execute one behavior experiment.

    Not retried: persona generation is not idempotent and a retry would
    start a second experiment. Celery workers are sync, so asyncio.run()
    bridges to the async service.
    """
    setup_logging(debug=settings.debug)
    logger.info("experiment_task_started", agent_id=agent_id, experiment_id=experiment_id)

    async def _run() -> dict[str, Any]:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        try:
            service = BehaviorExperimentService(session_factory=async_session_factory)
            experiment = await service.run_experiment(
                agent_id,
                test_id,
                experiment_id=experiment_id,
                nodes=nodes,
                state_overrides=state_overrides,
                cancel_token=RedisCancellationToken(client, experiment_id),
            )
        finally:
            await client.aclose()
            # Pooled connections belong to this event loop; drop them.
            await engine.dispose()
        return {
            "experiment_id": experiment.id,
            "status": experiment.status,
            "pass_rate": experiment.summary.pass_rate,
        }

    result = asyncio.run(_run())

    logger.info("experiment_task_completed", **result)
    return result
