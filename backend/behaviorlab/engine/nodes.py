"""Explicit classification of agent configuration graph nodes.

A graph is classified once when it is registered; the resulting catalog of
overridable nodes and the default state map are what the engine consumes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

import structlog

from behaviorlab.engine.types import OverridableNode, StateValues

logger = structlog.get_logger()


@dataclass(frozen=True)
class PromptedNode:
    id: str
    label: str
    type: str
    system_prompt: str | None
    human_prompt: str | None

    def to_overridable(self) -> OverridableNode:
        return OverridableNode(
            id=self.id,
            label=self.label,
            type=self.type,
            system_message_prompt=self.system_prompt,
            human_message_prompt=self.human_prompt,
        )


@dataclass(frozen=True)
class NotPrompted:
    id: str


NodeKind = Union[PromptedNode, NotPrompted]


def _node_data(raw_node: dict[str, Any]) -> dict[str, Any]:
    data = raw_node.get("data")
    return data if isinstance(data, dict) else raw_node


def classify_node(raw_node: dict[str, Any]) -> NodeKind:
    """A node is prompted iff it carries a system or human message prompt."""
    data = _node_data(raw_node)
    node_id = str(data.get("id") or raw_node.get("id") or "")
    inputs = data.get("inputs") or {}

    system_prompt = inputs.get("systemMessagePrompt") or None
    human_prompt = inputs.get("humanMessagePrompt") or None
    if not system_prompt and not human_prompt:
        return NotPrompted(id=node_id)

    return PromptedNode(
        id=node_id,
        label=data.get("label") or data.get("name") or node_id,
        type=data.get("type") or "Unknown",
        system_prompt=system_prompt,
        human_prompt=human_prompt,
    )


def build_node_catalog(graph: dict[str, Any]) -> list[OverridableNode]:
    """Every prompted node of a graph, in graph order."""
    catalog: list[OverridableNode] = []
    for raw_node in graph.get("nodes") or []:
        kind = classify_node(raw_node)
        if isinstance(kind, PromptedNode):
            catalog.append(kind.to_overridable())
    return catalog


def _is_state_node(data: dict[str, Any]) -> bool:
    inputs = data.get("inputs") or {}
    return (
        data.get("name") == "seqState"
        or data.get("type") == "State"
        or bool(inputs.get("stateMemoryUI"))
    )


def extract_state_defaults(graph: dict[str, Any]) -> StateValues:
    """Default state values declared by the graph's state node."""
    for raw_node in graph.get("nodes") or []:
        data = _node_data(raw_node)
        if not _is_state_node(data):
            continue

        raw_fields = (data.get("inputs") or {}).get("stateMemoryUI")
        if not raw_fields:
            return {}

        try:
            fields = json.loads(raw_fields) if isinstance(raw_fields, str) else raw_fields
        except json.JSONDecodeError as e:
            logger.warning("state_memory_parse_failed", node_id=data.get("id"), error=str(e))
            return {}

        return {
            str(f["key"]): str(f.get("defaultValue") or "")
            for f in fields
            if isinstance(f, dict) and f.get("key")
        }

    return {}
