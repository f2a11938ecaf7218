"""LLM-as-judge for behavior tests.

Scores a finished transcript against the rubric's scorer prompt and returns a
score in [0, 1] with a rationale. Pass/fail is decided elsewhere, so the
threshold policy stays independent of the scoring mechanism.
"""

from __future__ import annotations

import structlog

from behaviorlab.config import settings
from behaviorlab.core.exceptions import EvaluationError
from behaviorlab.engine.json_output import parse_json_object
from behaviorlab.engine.types import ConversationTurn, LLMClientProtocol, Persona
from behaviorlab.evaluation.types import JudgeVerdict

logger = structlog.get_logger()

CONVERSATION_PLACEHOLDER = "{{conversation}}"
PERSONA_PLACEHOLDER = "{{persona}}"

JUDGE_SYSTEM_PROMPT = (
    "You are an expert evaluator. Analyze the conversation and score it based on "
    "the criteria provided. Return JSON with: "
    '{ "score": number (0-1), "rationale": string }'
)


def format_transcript(conversation: list[ConversationTurn]) -> str:
    return "\n\n".join(
        f"{'Lead' if turn.role == 'user' else 'Agent'}: {turn.content}"
        for turn in conversation
    )


class BehaviorJudge:
    """Evaluates one conversation against a free-text scoring rubric."""

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        model: str | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.model = model or settings.judge_model

    async def score(
        self,
        scorer_prompt: str,
        conversation: list[ConversationTurn],
        persona: Persona,
    ) -> JudgeVerdict:
        prompt = self._fill_prompt(scorer_prompt, conversation, persona)

        response = await self.llm_client.chat(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            system=JUDGE_SYSTEM_PROMPT,
            temperature=0.1,  # Low temperature for consistent evaluation
            max_tokens=1024,
            json_mode=True,
        )

        verdict = self._parse_response(response.content)
        logger.debug("conversation_scored", persona_id=persona.id, score=verdict.score)
        return verdict

    @staticmethod
    def _fill_prompt(
        scorer_prompt: str,
        conversation: list[ConversationTurn],
        persona: Persona,
    ) -> str:
        transcript = format_transcript(conversation)

        if CONVERSATION_PLACEHOLDER not in scorer_prompt and PERSONA_PLACEHOLDER not in scorer_prompt:
            return (
                f"{scorer_prompt}\n\n"
                f"## Persona\n{persona.card}\n\n"
                f"## Conversation\n{transcript}"
            )

        return (
            scorer_prompt
            .replace(CONVERSATION_PLACEHOLDER, transcript)
            .replace(PERSONA_PLACEHOLDER, persona.card)
        )

    @staticmethod
    def _parse_response(content: str) -> JudgeVerdict:
        try:
            data = parse_json_object(content)
        except ValueError as e:
            raise EvaluationError(f"Failed to score conversation: {e}") from e

        raw_score = data.get("score")
        if isinstance(raw_score, bool):
            raise EvaluationError(f"Judge returned a non-numeric score: {raw_score!r}")
        try:
            score = float(raw_score)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise EvaluationError(f"Judge returned a non-numeric score: {raw_score!r}") from e

        return JudgeVerdict(
            score=min(1.0, max(0.0, score)),
            rationale=str(data.get("rationale") or "No rationale provided"),
        )
