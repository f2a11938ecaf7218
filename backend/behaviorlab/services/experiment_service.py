"""High-level behavior test service.

Loads agent and test records, builds engine components, runs experiments.
This is the bridge between the API / worker and the engine.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from behaviorlab.config import settings
from behaviorlab.core.exceptions import NotFoundError
from behaviorlab.db.experiment_store import SqlExperimentStore
from behaviorlab.engine.agent_gateway import AgentGateway
from behaviorlab.engine.conversation_simulator import ConversationSimulator
from behaviorlab.engine.environment import SimulationPolicy
from behaviorlab.engine.llm_client import LLMClient
from behaviorlab.engine.nodes import build_node_catalog, extract_state_defaults
from behaviorlab.engine.persona_synthesizer import PersonaSynthesizer
from behaviorlab.engine.templates import merge_state_values
from behaviorlab.engine.types import CancellationToken, LLMClientProtocol, OverridableNode
from behaviorlab.engine.user_simulator import UserSimulator
from behaviorlab.evaluation.insights import InsightsGenerator
from behaviorlab.evaluation.judge import BehaviorJudge
from behaviorlab.evaluation.tracking import BraintrustTracker
from behaviorlab.evaluation.types import Experiment
from behaviorlab.models.agent_config import AgentConfig
from behaviorlab.models.behavior_test import BehaviorTest
from behaviorlab.services.experiment_orchestrator import ExperimentOrchestrator

logger = structlog.get_logger()


class BehaviorExperimentService:
    """Runs a persisted behavior test against a registered agent."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        llm_client: LLMClientProtocol | None = None,
        policy: SimulationPolicy | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.llm_client = llm_client or LLMClient()
        self.policy = policy or SimulationPolicy.from_settings()
        self.store = SqlExperimentStore(session_factory)

    async def run_experiment(
        self,
        agent_id: str,
        test_id: str,
        experiment_id: str | None = None,
        nodes: list[dict[str, Any]] | None = None,
        state_overrides: dict[str, str] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Experiment:
        async with self.session_factory() as session:
            agent = await session.get(AgentConfig, agent_id)
            if agent is None:
                raise NotFoundError("Agent", agent_id)
            test = await session.get(BehaviorTest, test_id)
            if test is None or test.agent_id != agent_id:
                raise NotFoundError("BehaviorTest", test_id)
            rubric = test.to_rubric()
            api_url = agent.api_url
            graph = agent.graph or {}

        # Edited prompts from the caller win over the registered graph.
        if nodes is not None:
            node_list = [OverridableNode.from_dict(n) for n in nodes]
        else:
            node_list = build_node_catalog(graph)
        state_values = merge_state_values(extract_state_defaults(graph), state_overrides)

        logger.info(
            "experiment_service_starting",
            agent_id=agent_id,
            test_id=test_id,
            node_count=len(node_list),
            state_keys=len(state_values),
        )

        orchestrator = self.build_orchestrator(api_url)
        return await orchestrator.run(
            agent_id,
            rubric,
            node_list,
            state_values,
            experiment_id=experiment_id,
            cancel_token=cancel_token,
        )

    def build_orchestrator(self, api_url: str) -> ExperimentOrchestrator:
        gateway = AgentGateway(api_url)
        simulator = ConversationSimulator(
            user_simulator=UserSimulator(self.llm_client),
            gateway=gateway,
            policy=self.policy,
        )
        return ExperimentOrchestrator(
            synthesizer=PersonaSynthesizer(self.llm_client, policy=self.policy),
            simulator=simulator,
            judge=BehaviorJudge(self.llm_client),
            store=self.store,
            insights=InsightsGenerator(self.llm_client),
            tracker=BraintrustTracker() if settings.tracking_enabled else None,
            policy=self.policy,
        )


async def load_agent(db: AsyncSession, agent_id: str) -> AgentConfig:
    result = await db.execute(select(AgentConfig).where(AgentConfig.id == agent_id))
    agent = result.scalar_one_or_none()
    if not agent:
        raise NotFoundError("Agent", agent_id)
    return agent
