"""SQLAlchemy-backed experiment store.

Each call opens its own short session, so the orchestrator's checkpoint and
final writes are visible to pollers as soon as they commit.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from behaviorlab.evaluation.types import Experiment
from behaviorlab.models.experiment import ExperimentRecord

logger = structlog.get_logger()


def _parse_timestamp(value: str | None) -> datetime | None:
    """ISO string -> naive UTC datetime for timezone-less columns."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class SqlExperimentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def save(self, agent_id: str, experiment: Experiment) -> None:
        """Insert or overwrite the experiment record."""
        async with self.session_factory() as session:
            record = await session.get(ExperimentRecord, experiment.id)
            if record is None:
                record = ExperimentRecord(
                    id=experiment.id,
                    agent_id=agent_id,
                    created_at=_parse_timestamp(experiment.created_at),
                )
                session.add(record)
            elif record.agent_id != agent_id:
                raise ValueError(
                    f"Experiment {experiment.id} belongs to agent {record.agent_id}, not {agent_id}"
                )

            record.test_id = experiment.test_id
            record.status = experiment.status
            record.completed_at = _parse_timestamp(experiment.completed_at)
            record.payload = experiment.to_dict()
            await session.commit()

        logger.debug("experiment_saved", experiment_id=experiment.id, status=experiment.status)

    async def load(self, agent_id: str, experiment_id: str) -> Experiment | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ExperimentRecord).where(
                    ExperimentRecord.id == experiment_id,
                    ExperimentRecord.agent_id == agent_id,
                )
            )
            record = result.scalar_one_or_none()
            return Experiment.from_dict(record.payload) if record else None

    async def list_all(self, agent_id: str) -> list[Experiment]:
        """All experiments for an agent, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ExperimentRecord)
                .where(ExperimentRecord.agent_id == agent_id)
                .order_by(ExperimentRecord.created_at.desc())
            )
            return [Experiment.from_dict(r.payload) for r in result.scalars().all()]

    async def delete(self, agent_id: str, experiment_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(ExperimentRecord).where(
                    ExperimentRecord.id == experiment_id,
                    ExperimentRecord.agent_id == agent_id,
                )
            )
            await session.commit()

    async def clear_all(self, agent_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(ExperimentRecord).where(ExperimentRecord.agent_id == agent_id)
            )
            await session.commit()
        logger.info("experiments_cleared", agent_id=agent_id)
