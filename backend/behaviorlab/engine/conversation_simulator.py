"""Fixed-length conversation between one persona and the target agent.

Flow per round-trip:
1. User simulator generates the persona's next message from the full history
2. Message is sent to the agent with the session chat id and the resolved
   prompt overrides
3. Both turns are appended to the transcript (agent reasoning passed through)
4. Wait the configured delay, then repeat until the round-trip budget is spent

Turns strictly depend on the previous turn, so there is no parallelism inside
one simulation. Errors propagate; the orchestrator isolates them per persona.
"""

from __future__ import annotations

import asyncio

import structlog

from behaviorlab.engine.environment import SimulationPolicy
from behaviorlab.engine.templates import build_override_config
from behaviorlab.engine.types import (
    AgentGatewayProtocol,
    CancellationToken,
    ConversationTurn,
    OverridableNode,
    Persona,
    StateValues,
)
from behaviorlab.engine.user_simulator import UserSimulator

logger = structlog.get_logger()


class SimulationCancelled(Exception):
    """Raised at a suspension point once cancellation was requested."""


class ConversationSimulator:
    """Drives one scripted conversation per call to ``simulate``."""

    def __init__(
        self,
        user_simulator: UserSimulator,
        gateway: AgentGatewayProtocol,
        policy: SimulationPolicy | None = None,
    ) -> None:
        self.user_sim = user_simulator
        self.gateway = gateway
        self.policy = policy or SimulationPolicy()

    async def simulate(
        self,
        persona: Persona,
        nodes: list[OverridableNode],
        state_values: StateValues,
        cancel_token: CancellationToken | None = None,
    ) -> list[ConversationTurn]:
        """Run exactly ``policy.turns_per_simulation`` round-trips."""
        override_config = build_override_config(nodes, state_values, force_all=True)
        turns: list[ConversationTurn] = []
        chat_id: str | None = None

        logger.info(
            "simulation_started",
            persona_id=persona.id,
            rounds=self.policy.turns_per_simulation,
        )

        for round_index in range(self.policy.turns_per_simulation):
            await self._check_cancelled(cancel_token, persona)

            # === USER TURN ===
            user_message = await self.user_sim.generate(persona, turns)

            # === AGENT TURN ===
            await self._check_cancelled(cancel_token, persona)
            reply = await self.gateway.send(
                user_message,
                chat_id=chat_id,
                override_config=override_config,
            )
            # The first reply opens the session; later turns reuse it.
            if chat_id is None:
                chat_id = reply.chat_id

            turns.append(ConversationTurn(role="user", content=user_message))
            turns.append(
                ConversationTurn(
                    role="assistant",
                    content=reply.text,
                    trace_data=reply.agent_reasoning,
                )
            )

            is_last = round_index == self.policy.turns_per_simulation - 1
            if not is_last and self.policy.turn_delay_seconds > 0:
                await asyncio.sleep(self.policy.turn_delay_seconds)

        logger.info("simulation_completed", persona_id=persona.id, turn_count=len(turns))
        return turns

    @staticmethod
    async def _check_cancelled(
        cancel_token: CancellationToken | None,
        persona: Persona,
    ) -> None:
        if cancel_token is not None and await cancel_token.is_cancelled():
            logger.info("simulation_cancelled", persona_id=persona.id)
            raise SimulationCancelled(f"Simulation for {persona.name} was cancelled")
