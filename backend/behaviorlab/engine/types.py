"""Core types and protocols for the behavior experiment engine.

All engine components depend on these interfaces, not on concrete implementations.
This makes every component independently testable and swappable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from behaviorlab.core.exceptions import ConfigurationError

# Mapping of state key -> value injected into prompt templates.
StateValues = dict[str, str]


# ============================================================
# Data Types
# ============================================================


@dataclass(frozen=True)
class Persona:
    """A synthetic user profile. Immutable once generated."""

    id: str
    name: str
    role: str
    goal: str
    context: str
    tone: str

    @property
    def card(self) -> str:
        return (
            f"Name: {self.name}\n"
            f"Role: {self.role}\n"
            f"Goal: {self.goal}\n"
            f"Context: {self.context}\n"
            f"Tone: {self.tone}"
        )

    def system_prompt(self, turn_number: int, is_first_message: bool) -> str:
        """Role-play instructions for the model speaking as this persona."""
        if is_first_message:
            opening = (
                "THIS IS YOUR FIRST MESSAGE - Start naturally like a real person would:\n"
                "- Say hi and briefly state what you're looking for (based on your goal)\n"
                "- Don't be too specific yet - you're just starting the conversation\n"
                "- Keep it simple and natural, 1-2 sentences max\n"
                "- Don't dump all your details upfront - let the conversation develop"
            )
        else:
            opening = (
                "Respond naturally to the agent's last message. Keep it concise (1-3 sentences).\n"
                "Build on the conversation - provide info when asked, ask questions when needed."
            )

        return f"""You are roleplaying as {self.name}, a {self.role}.
Your goal is: {self.goal}.
Your background: {self.context}.
Your tone is: {self.tone}.

{opening}

IMPORTANT - ACT ON YOUR GOAL:
Your goal and context describe specific behaviors or information you should naturally bring up.
- Around turn 2-4: naturally introduce the key elements from your goal/context
- Don't wait to be asked - proactively bring up what's described in your goal
- If your context mentions specific details (names, numbers, complaints), use them naturally
- Stay in character and make it feel like a real conversation
Current turn: {turn_number}

Stay focused on your goal. Do not break character."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Persona:
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name") or ""),
            role=str(data.get("role") or ""),
            goal=str(data.get("goal") or ""),
            context=str(data.get("context") or ""),
            tone=str(data.get("tone") or ""),
        )


@dataclass
class ConversationTurn:
    """A single turn in a simulated conversation."""

    role: str  # "user" | "assistant"
    content: str
    trace_data: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationTurn:
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            trace_data=data.get("trace_data"),
        )


@dataclass
class LLMResponse:
    """Normalized response from any LLM provider."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    stop_reason: str = ""


@dataclass
class AgentReply:
    """One reply from the target agent."""

    text: str
    chat_id: str | None = None
    chat_message_id: str | None = None
    agent_reasoning: list[Any] | None = None


@dataclass
class OverridableNode:
    """One editable prompt slot in the target agent's configuration graph."""

    id: str
    label: str
    type: str
    system_message_prompt: str | None = None
    human_message_prompt: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OverridableNode:
        node_id = data.get("id")
        if not node_id:
            raise ConfigurationError(f"Node is missing an id: {data!r}")
        return cls(
            id=str(node_id),
            label=data.get("label") or str(node_id),
            type=data.get("type") or "Unknown",
            system_message_prompt=(
                data.get("system_message_prompt") or data.get("systemMessagePrompt")
            ),
            human_message_prompt=(
                data.get("human_message_prompt") or data.get("humanMessagePrompt")
            ),
        )


@dataclass
class AgentContext:
    """What persona generation is told about the agent under test."""

    brand_name: str | None = None
    services: list[str] = field(default_factory=list)
    node_prompts: list[tuple[str, str]] = field(default_factory=list)  # (label, prompt)


# ============================================================
# Protocols (Interfaces): mock these for tests
# ============================================================


class LLMClientProtocol(Protocol):
    """Interface for any LLM provider (OpenAI, Claude, Ollama)."""

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse: ...


class AgentGatewayProtocol(Protocol):
    """Interface for sending one conversational turn to the target agent."""

    async def send(
        self,
        question: str,
        chat_id: str | None = None,
        override_config: dict[str, Any] | None = None,
    ) -> AgentReply: ...


class CancellationToken(Protocol):
    """Checked at every suspension point of a running simulation."""

    async def is_cancelled(self) -> bool: ...
