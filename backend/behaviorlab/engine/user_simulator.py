"""LLM-powered user simulator.

Generates the next message a persona would send, given the conversation so far.
"""

from __future__ import annotations

from typing import Any

import structlog

from behaviorlab.config import settings
from behaviorlab.engine.types import ConversationTurn, LLMClientProtocol, Persona

logger = structlog.get_logger()


class UserSimulator:
    """Generates simulated user messages using an LLM."""

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        model: str | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.model = model or settings.simulator_model

    async def generate(
        self,
        persona: Persona,
        conversation_history: list[ConversationTurn],
    ) -> str:
        """Generate the next user message for ``persona``."""
        is_first_message = not conversation_history
        turn_number = len(conversation_history) // 2 + 1

        messages: list[dict[str, Any]] = []
        for turn in conversation_history:
            if turn.role == "user":
                # The user sim sees its own previous messages as "assistant"
                messages.append({"role": "assistant", "content": turn.content})
            elif turn.role == "assistant":
                # ... and the agent's messages as "user" input
                messages.append({"role": "user", "content": turn.content})

        if not messages:
            messages.append({
                "role": "user",
                "content": "Start the conversation.",
            })

        response = await self.llm_client.chat(
            model=self.model,
            messages=messages,
            system=persona.system_prompt(turn_number, is_first_message),
            temperature=0.8,
            max_tokens=500,
        )

        logger.debug(
            "user_simulator_generated",
            persona_id=persona.id,
            turn=turn_number,
            content_length=len(response.content),
        )

        return response.content or "..."
