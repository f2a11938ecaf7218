from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class NodeInput(BaseModel):
    """One edited prompt slot. Accepts the agent graph's camelCase keys too."""

    id: str = Field(..., min_length=1)
    label: str | None = None
    type: str | None = None
    system_message_prompt: str | None = Field(
        default=None,
        validation_alias=AliasChoices("system_message_prompt", "systemMessagePrompt"),
    )
    human_message_prompt: str | None = Field(
        default=None,
        validation_alias=AliasChoices("human_message_prompt", "humanMessagePrompt"),
    )


class ExperimentCreate(BaseModel):
    """Start an experiment. ``nodes`` carries edited prompts; omitted means
    the agent's registered graph is used as-is."""

    test_id: str
    nodes: list[NodeInput] | None = None
    state_overrides: dict[str, str] | None = None


class ExperimentAccepted(BaseModel):
    experiment_id: str
    status: str = "queued"


class PersonaSchema(BaseModel):
    id: str
    name: str
    role: str
    goal: str
    context: str
    tone: str


class ConversationTurnSchema(BaseModel):
    role: str
    content: str
    trace_data: Any = None


class SimulationResultSchema(BaseModel):
    id: str
    persona_id: str
    persona: PersonaSchema
    conversation: list[ConversationTurnSchema]
    score: float
    passed: bool
    rationale: str
    scored_at: str


class ExperimentSummarySchema(BaseModel):
    total: int
    passed: int
    failed: int
    pass_rate: int
    avg_score: float
    duration_ms: int | None = None
    ai_summary: str | None = None
    recommendations: list[str] = Field(default_factory=list)


class ScoringRubricSchema(BaseModel):
    id: str
    name: str
    problem_description: str
    scorer_prompt: str
    persona_hint: str
    simulation_count: int
    created_at: str


class ExperimentResponse(BaseModel):
    id: str
    agent_id: str
    test_id: str
    test: ScoringRubricSchema
    results: list[SimulationResultSchema]
    summary: ExperimentSummarySchema
    status: str
    braintrust_url: str | None = None
    error_message: str | None = None
    created_at: str
    completed_at: str | None = None


class ExperimentListResponse(BaseModel):
    total: int
    items: list[ExperimentResponse]
