"""Experiment data types and evaluation protocols.

All evaluators and stores depend on these interfaces, not on concrete implementations.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from behaviorlab.core.exceptions import SimulationError
from behaviorlab.engine.types import ConversationTurn, Persona


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ScoringRubric:
    """A behavior test: the problem statement plus its generated judge prompt."""

    id: str
    name: str
    problem_description: str
    scorer_prompt: str
    persona_hint: str
    simulation_count: int
    created_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScoringRubric:
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})


@dataclass
class JudgeVerdict:
    score: float  # 0.0 to 1.0
    rationale: str


@dataclass
class SimulationResult:
    """One persona's scored conversation."""

    id: str
    persona_id: str
    persona: Persona
    conversation: list[ConversationTurn]
    score: float
    passed: bool
    rationale: str
    scored_at: str = field(default_factory=utc_now_iso)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationResult:
        return cls(
            id=data["id"],
            persona_id=data["persona_id"],
            persona=Persona.from_dict(data["persona"]),
            conversation=[ConversationTurn.from_dict(t) for t in data.get("conversation", [])],
            score=float(data["score"]),
            passed=bool(data["passed"]),
            rationale=data.get("rationale", ""),
            scored_at=data.get("scored_at") or utc_now_iso(),
        )


@dataclass
class ExperimentSummary:
    """Derived from the results; recomputed, never edited by hand."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    pass_rate: int = 0  # 0 to 100
    avg_score: float = 0.0
    duration_ms: int | None = None
    ai_summary: str | None = None
    recommendations: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentSummary:
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})


@dataclass
class Experiment:
    """One run of a rubric against N personas."""

    id: str
    agent_id: str
    test_id: str
    test: ScoringRubric
    results: list[SimulationResult] = field(default_factory=list)
    summary: ExperimentSummary = field(default_factory=ExperimentSummary)
    status: str = "running"  # "running" | "completed" | "failed"
    braintrust_url: str | None = None
    error_message: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Experiment:
        return cls(
            id=data["id"],
            agent_id=data["agent_id"],
            test_id=data["test_id"],
            test=ScoringRubric.from_dict(data["test"]),
            results=[SimulationResult.from_dict(r) for r in data.get("results", [])],
            summary=ExperimentSummary.from_dict(data.get("summary") or {}),
            status=data.get("status", "running"),
            braintrust_url=data.get("braintrust_url"),
            error_message=data.get("error_message"),
            created_at=data.get("created_at") or utc_now_iso(),
            completed_at=data.get("completed_at"),
        )


@dataclass
class SimulationOutcome:
    """Typed per-persona result: either a scored result or the error that excluded it."""

    persona: Persona
    result: SimulationResult | None = None
    error: SimulationError | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class ExperimentInsights:
    summary: str
    recommendations: list[str] = field(default_factory=list)


class JudgeProtocol(Protocol):
    async def score(
        self,
        scorer_prompt: str,
        conversation: list[ConversationTurn],
        persona: Persona,
    ) -> JudgeVerdict: ...


class ExperimentStoreProtocol(Protocol):
    """Durable record of experiments, keyed by id and scoped to an agent."""

    async def save(self, agent_id: str, experiment: Experiment) -> None: ...

    async def load(self, agent_id: str, experiment_id: str) -> Experiment | None: ...

    async def list_all(self, agent_id: str) -> list[Experiment]: ...

    async def delete(self, agent_id: str, experiment_id: str) -> None: ...

    async def clear_all(self, agent_id: str) -> None: ...


class TrackingSessionProtocol(Protocol):
    async def log_result(self, result: SimulationResult) -> None: ...

    async def finish(self) -> str | None: ...


class ExperimentTrackerProtocol(Protocol):
    """Optional external experiment tracking. Every failure is non-fatal."""

    async def start(self, test: ScoringRubric) -> TrackingSessionProtocol: ...
