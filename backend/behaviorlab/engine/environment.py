"""Experiment policy.

The conversation length and pass threshold are policy constants, not derived
from content. Everything here is configurable through settings.
"""

from __future__ import annotations

from dataclasses import dataclass

from behaviorlab.config import settings


@dataclass
class SimulationPolicy:
    """Knobs shared by the simulator, the synthesizer and the orchestrator."""

    turns_per_simulation: int = 5
    turn_delay_seconds: float = 0.3
    pass_threshold: float = 0.7
    persona_batch_size: int = 5
    max_empty_persona_batches: int = 3
    max_concurrency: int = 5

    @classmethod
    def from_settings(cls) -> SimulationPolicy:
        return cls(
            turns_per_simulation=settings.turns_per_simulation,
            turn_delay_seconds=settings.turn_delay_seconds,
            pass_threshold=settings.pass_threshold,
            persona_batch_size=settings.persona_batch_size,
            max_empty_persona_batches=settings.max_empty_persona_batches,
            max_concurrency=settings.max_concurrent_simulations,
        )
