"""Rubric and persona synthesis from a natural-language problem statement.

Generative services are unreliable at honoring exact counts for larger
batches, so personas are requested in bounded batches until exactly the
requested number has been collected.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any

import structlog

from behaviorlab.config import settings
from behaviorlab.core.exceptions import GenerationError
from behaviorlab.engine.environment import SimulationPolicy
from behaviorlab.engine.json_output import parse_json_object, parse_json_payload
from behaviorlab.engine.types import AgentContext, LLMClientProtocol, OverridableNode, Persona

logger = structlog.get_logger()

PROMPT_EXCERPT_CHARS = 500

_BRAND_NAME = re.compile(r"brand[_\s]?name[\"\s:}]+([^\"}\n]+)", re.IGNORECASE)
_BRAND_FALLBACKS = [
    re.compile(r"for\s+(\w+\s*\w*)\s*\.", re.IGNORECASE),
    re.compile(r"(\w+\s*Business)\s+", re.IGNORECASE),
    re.compile(r"specialist\s+for\s+(\w+)", re.IGNORECASE),
]

RUBRIC_SYSTEM_PROMPT = """You are an expert at creating evaluation criteria for AI agents.

Given a problem description, generate:
1. A clear, specific LLM judge prompt that can evaluate if an AI agent exhibits the correct behavior
2. A short name for this test (2-4 words)
3. A hint for generating test personas relevant to this behavior

The scorer prompt should:
- Focus on the INTENT of the rule, not rigid mechanical interpretations
- Be pragmatic about how real conversations flow - the behavior can occur in the same message or across messages
- Consider the overall conversation outcome, not just technical compliance
- Use clear scoring criteria (0.0 = failed, 0.5 = partial, 1.0 = passed)
- Ask for a rationale explaining the score
- Reference {{conversation}} for the full conversation and {{persona}} for persona details

Avoid overly rigid scorers:
1. DON'T require behaviors to happen in a specific "next message"
2. DON'T penalize the agent for not repeating something the user already acknowledged
3. DON'T be overly technical about message boundaries
4. DO consider natural conversation context
5. DO give the agent credit if the intent of the rule is satisfied

Return JSON with: { "scorerPrompt": string, "testName": string, "personaHint": string }"""

REFINE_SYSTEM_PROMPT = """You are an expert at writing behavior test descriptions for AI agents.

Take a rough description of a behavior to test and refine it into a clear, specific, testable description.

A good behavior test description is:
1. SPECIFIC - clearly defines the exact behavior expected
2. MEASURABLE - easy to determine if the agent passed or failed
3. Explicit about TRIGGER CONDITIONS - when the behavior should occur
4. Explicit about the EXPECTED RESPONSE - what the agent should do or say
5. CONCISE - 2-4 sentences

Return ONLY the refined description, no explanations or quotes."""


@dataclass
class RubricDraft:
    """Generated scoring rubric, before it is persisted as a behavior test."""

    scorer_prompt: str
    test_name: str
    persona_hint: str


def agent_context_from_nodes(nodes: list[OverridableNode]) -> AgentContext:
    """Summarize the agent's prompts for persona generation."""
    node_prompts = [
        (node.label, node.system_message_prompt)
        for node in nodes
        if node.system_message_prompt
    ]
    all_prompts = " ".join(prompt for _, prompt in node_prompts)

    brand_name: str | None = None
    match = _BRAND_NAME.search(all_prompts)
    if match:
        brand_name = match.group(1).strip()
    else:
        for pattern in _BRAND_FALLBACKS:
            match = pattern.search(all_prompts)
            if match:
                brand_name = match.group(1).strip()
                break

    return AgentContext(brand_name=brand_name, node_prompts=node_prompts)


class PersonaSynthesizer:
    """Generates scoring rubrics and behavior-triggering personas."""

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        model: str | None = None,
        policy: SimulationPolicy | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.model = model or settings.persona_model
        self.policy = policy or SimulationPolicy()

    async def synthesize_rubric(self, problem_description: str) -> RubricDraft:
        response = await self.llm_client.chat(
            model=self.model,
            messages=[{"role": "user", "content": f"Problem: {problem_description}"}],
            system=RUBRIC_SYSTEM_PROMPT,
            json_mode=True,
        )

        try:
            data = parse_json_object(response.content)
        except ValueError as e:
            raise GenerationError(f"Failed to generate scorer prompt: {e}") from e

        scorer_prompt = data.get("scorerPrompt")
        if not scorer_prompt:
            raise GenerationError("Failed to generate scorer prompt: no scorerPrompt in output")

        draft = RubricDraft(
            scorer_prompt=str(scorer_prompt),
            test_name=str(data.get("testName") or "Behavior Test"),
            persona_hint=str(data.get("personaHint") or ""),
        )
        logger.info("rubric_generated", test_name=draft.test_name)
        return draft

    async def refine_description(self, problem_description: str) -> str:
        response = await self.llm_client.chat(
            model=self.model,
            messages=[{
                "role": "user",
                "content": f'Refine this behavior test description:\n\n"{problem_description}"',
            }],
            system=REFINE_SYSTEM_PROMPT,
            temperature=1.0,
        )
        return response.content.strip() or problem_description

    async def synthesize_personas(
        self,
        count: int,
        problem_description: str,
        persona_hint: str,
        agent_context: AgentContext | None = None,
    ) -> list[Persona]:
        """Generate exactly ``count`` personas, in batches of ``persona_batch_size``."""
        personas: list[Persona] = []
        batch_number = 0
        empty_batches = 0

        while len(personas) < count:
            batch_count = min(self.policy.persona_batch_size, count - len(personas))
            batch_number += 1

            raw_personas = await self._request_batch(
                batch_count, problem_description, persona_hint, agent_context, personas,
            )

            timestamp = time.time_ns() // 1_000_000
            added = 0
            for raw in raw_personas:
                if len(personas) >= count:
                    break
                if not isinstance(raw, dict):
                    continue
                persona = Persona.from_dict({**raw, "id": f"persona-{timestamp}-{len(personas)}"})
                personas.append(persona)
                added += 1

            logger.info(
                "persona_batch_generated",
                batch=batch_number,
                requested=batch_count,
                received=added,
                total=len(personas),
                target=count,
            )

            if added == 0:
                empty_batches += 1
                if empty_batches >= self.policy.max_empty_persona_batches:
                    raise GenerationError(
                        f"Persona generation stalled at {len(personas)}/{count} "
                        f"after {empty_batches} empty batches"
                    )
            else:
                empty_batches = 0

        return personas

    async def _request_batch(
        self,
        batch_count: int,
        problem_description: str,
        persona_hint: str,
        agent_context: AgentContext | None,
        previous: list[Persona],
    ) -> list[Any]:
        prompt = self._build_batch_prompt(
            batch_count, problem_description, persona_hint, agent_context, previous,
        )
        response = await self.llm_client.chat(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            json_mode=True,
        )

        try:
            payload = parse_json_payload(response.content)
        except ValueError as e:
            raise GenerationError(f"Failed to generate personas: {e}") from e

        if isinstance(payload, list):
            return payload
        batch = payload.get("personas")
        return batch if isinstance(batch, list) else []

    @staticmethod
    def _build_batch_prompt(
        batch_count: int,
        problem_description: str,
        persona_hint: str,
        agent_context: AgentContext | None,
        previous: list[Persona],
    ) -> str:
        context_section = ""
        if agent_context and agent_context.node_prompts:
            agent_info = "\n\n".join(
                f"[{label}]: {prompt[:PROMPT_EXCERPT_CHARS]}..."
                for label, prompt in agent_context.node_prompts
            )
            brand = f"Brand: {agent_context.brand_name}\n" if agent_context.brand_name else ""
            services = (
                f"Services: {', '.join(agent_context.services)}\n"
                if agent_context.services else ""
            )
            context_section = f"\nAGENT CONTEXT:\n{brand}{services}\nAgent Configuration:\n{agent_info}\n"

        previous_section = ""
        if previous:
            names = "\n".join(f"- {p.name} ({p.role})" for p in previous)
            previous_section = (
                "\nYou have already generated these personas in previous batches. "
                f"Make the new ones DIFFERENT:\n{names}\n"
            )

        return f"""Generate EXACTLY {batch_count} distinct user personas for BEHAVIOR TESTING an AI agent.

BEHAVIOR BEING TESTED:
{problem_description}

PERSONA REQUIREMENTS:
{persona_hint}
{context_section}{previous_section}
Create personas that will NATURALLY TRIGGER the behavior being tested:
1. Bake the triggering behavior directly into each persona's "goal" and "context"
2. Make sure the persona will naturally do or say things that test whether the agent behaves correctly
3. Each persona should approach the situation differently but all should trigger the same behavior test

Example - testing "Agent should use formal titles for doctors":
{{
  "name": "Dr. Sarah Chen",
  "role": "Physician inquiring about services",
  "goal": "Ask about appointment scheduling. I'll mention I'm a doctor early in the conversation.",
  "context": "Board-certified cardiologist. Will introduce herself as 'Dr. Chen'.",
  "tone": "professional and direct"
}}

Return a JSON object with a "personas" array containing EXACTLY {batch_count} personas. Each persona MUST have:
- name: string (realistic full name)
- role: string (their role relevant to this business)
- goal: string (what they want to achieve - MUST include triggering behavior)
- context: string (background that makes them naturally exhibit the test behavior)
- tone: string (communication style)

Output ONLY valid JSON."""
