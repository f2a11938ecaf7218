import structlog
from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid_extensions import uuid7

from behaviorlab.api.deps import get_experiment_store
from behaviorlab.core.exceptions import NotFoundError, ValidationError
from behaviorlab.db.redis_client import get_redis
from behaviorlab.db.session import get_db
from behaviorlab.evaluation.types import Experiment, ExperimentStoreProtocol
from behaviorlab.models.behavior_test import BehaviorTest
from behaviorlab.schemas.experiment import (
    ExperimentAccepted,
    ExperimentCreate,
    ExperimentListResponse,
    ExperimentResponse,
)
from behaviorlab.services.cancellation import request_cancel
from behaviorlab.services.experiment_service import load_agent
from behaviorlab.workers.experiment_tasks import run_behavior_experiment

router = APIRouter(prefix="/agents/{agent_id}/experiments", tags=["experiments"])
logger = structlog.get_logger()


def _to_response(experiment: Experiment) -> ExperimentResponse:
    return ExperimentResponse.model_validate(experiment.to_dict())


@router.post("", response_model=ExperimentAccepted, status_code=202)
async def create_experiment(
    agent_id: str,
    body: ExperimentCreate,
    db: AsyncSession = Depends(get_db),
) -> ExperimentAccepted:
    """Queue an experiment run.

    The id is assigned here so clients can poll immediately. The record
    appears once personas are generated; if generation fails, none is created.
    """
    await load_agent(db, agent_id)
    result = await db.execute(
        select(BehaviorTest.id).where(
            BehaviorTest.id == body.test_id, BehaviorTest.agent_id == agent_id
        )
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("BehaviorTest", body.test_id)

    experiment_id = str(uuid7())
    run_behavior_experiment.delay(
        agent_id,
        body.test_id,
        experiment_id,
        nodes=[n.model_dump() for n in body.nodes] if body.nodes is not None else None,
        state_overrides=body.state_overrides,
    )

    logger.info("experiment_queued", agent_id=agent_id, experiment_id=experiment_id)
    return ExperimentAccepted(experiment_id=experiment_id)


@router.get("", response_model=ExperimentListResponse)
async def list_experiments(
    agent_id: str,
    store: ExperimentStoreProtocol = Depends(get_experiment_store),
) -> ExperimentListResponse:
    experiments = await store.list_all(agent_id)
    return ExperimentListResponse(
        total=len(experiments),
        items=[_to_response(e) for e in experiments],
    )


@router.delete("", status_code=204)
async def clear_experiments(
    agent_id: str,
    store: ExperimentStoreProtocol = Depends(get_experiment_store),
) -> None:
    await store.clear_all(agent_id)


@router.get("/{experiment_id}", response_model=ExperimentResponse)
async def get_experiment(
    agent_id: str,
    experiment_id: str,
    store: ExperimentStoreProtocol = Depends(get_experiment_store),
) -> ExperimentResponse:
    experiment = await store.load(agent_id, experiment_id)
    if experiment is None:
        raise NotFoundError("Experiment", experiment_id)
    return _to_response(experiment)


@router.delete("/{experiment_id}", status_code=204)
async def delete_experiment(
    agent_id: str,
    experiment_id: str,
    store: ExperimentStoreProtocol = Depends(get_experiment_store),
) -> None:
    await store.delete(agent_id, experiment_id)


@router.post("/{experiment_id}/cancel", response_model=ExperimentAccepted, status_code=202)
async def cancel_experiment(
    agent_id: str,
    experiment_id: str,
    store: ExperimentStoreProtocol = Depends(get_experiment_store),
    redis: Redis = Depends(get_redis),  # type: ignore[type-arg]
) -> ExperimentAccepted:
    """Ask the worker to stop simulating. Remaining simulations become failures."""
    experiment = await store.load(agent_id, experiment_id)
    if experiment is not None and experiment.status != "running":
        raise ValidationError(f"Experiment {experiment_id} is already {experiment.status}")

    await request_cancel(redis, experiment_id)
    logger.info("experiment_cancel_requested", agent_id=agent_id, experiment_id=experiment_id)
    return ExperimentAccepted(experiment_id=experiment_id, status="cancelling")
