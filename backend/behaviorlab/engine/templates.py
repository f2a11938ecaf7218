"""Prompt template resolution.

Pure functions, no I/O. Decides exactly which system prompt each simulated
conversation sends to the target agent.

Resolution is two fixed passes:
1. Legacy aliases (``{system_base}``) are expanded first, because the aliased
   value may itself contain ``{key}`` placeholders.
2. Every ``{key}`` present in the state map is replaced by its value in a
   single scan. Text produced by this pass is not scanned again.

Placeholders whose key is not in the state map are left as literal text.
"""

from __future__ import annotations

import re
from typing import Any

from behaviorlab.engine.types import OverridableNode, StateValues

# alias placeholder -> state key whose value replaces it
LEGACY_ALIASES: dict[str, str] = {
    "system_base": "brand_system_base",
}

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def resolve(template: str, state_values: StateValues) -> str:
    """Substitute state values into a prompt template."""
    result = template

    for alias, target in LEGACY_ALIASES.items():
        value = state_values.get(target)
        if value:
            result = result.replace("{" + alias + "}", value)

    def _substitute(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in state_values:
            return match.group(0)
        return state_values[key] or ""

    return _PLACEHOLDER.sub(_substitute, result)


def merge_state_values(
    defaults: dict[str, Any],
    overrides: dict[str, Any] | None = None,
) -> StateValues:
    """Overlay operator overrides on the graph's default state values."""
    merged = {**defaults, **(overrides or {})}
    return {key: "" if value is None else str(value) for key, value in merged.items()}


def build_override_config(
    nodes: list[OverridableNode],
    state_values: StateValues,
    force_all: bool = True,
    baseline_nodes: list[OverridableNode] | None = None,
    baseline_state: StateValues | None = None,
) -> dict[str, Any] | None:
    """Build the ``overrideConfig`` sent with each agent turn.

    With ``force_all`` every node that has a system prompt is resolved and sent,
    so repeated runs see identical prompts regardless of the agent's stored
    defaults. Without it, a config is only produced when some node prompt or
    state value differs from the baseline.
    """
    if not force_all and not _differs_from_baseline(
        nodes, state_values, baseline_nodes or [], baseline_state or {},
    ):
        return None

    prompts: dict[str, str] = {}
    for node in nodes:
        if node.system_message_prompt:
            prompts[node.id] = resolve(node.system_message_prompt, state_values)

    config: dict[str, Any] = {}
    if prompts:
        config["systemMessagePrompt"] = prompts
    return config


def _differs_from_baseline(
    nodes: list[OverridableNode],
    state_values: StateValues,
    baseline_nodes: list[OverridableNode],
    baseline_state: StateValues,
) -> bool:
    for key, value in state_values.items():
        if baseline_state.get(key) != value:
            return True

    baseline_by_id = {n.id: n for n in baseline_nodes}
    for node in nodes:
        original = baseline_by_id.get(node.id)
        if original is None:
            continue
        if node.system_message_prompt != original.system_message_prompt:
            return True

    return False
