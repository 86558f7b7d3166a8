"""Pre-generation cost estimates, per episode format.

Figures are averages per content call (input/output tokens) and per speech
character; they are a planning aid, not a bill.
"""

from __future__ import annotations

import math

from pydantic import BaseModel

# USD
COMPLETION_INPUT_PER_1K = 0.01
COMPLETION_OUTPUT_PER_1K = 0.03
SPEECH_HD_PER_1M = 15.00
SPEECH_STANDARD_PER_1M = 7.50


class CostEstimate(BaseModel):
    completion_tokens: int
    completion_cost: float
    speech_characters: int
    speech_cost: float
    total_cost: float
    estimated_duration: float  # seconds


# (input tokens, output tokens) per content call, speech characters, duration
_PROFILES: dict[str, tuple[list[tuple[int, int]], int, float]] = {
    "narrative": ([(500, 1500), (2000, 3000)], 2500, 600),
    "interview": ([(500, 1500), (2500, 4000)], 12000, 900),
    "debate": ([(800, 2200), (3000, 5000)], 18000, 1080),
    "adventure_node": ([(400, 1100), (1500, 2500)], 3000, 240),
}
_ADVENTURE_OUTLINE_CALL = (1000, 3000)


def _completion_cost(calls: list[tuple[int, int]]) -> float:
    return sum(
        i * COMPLETION_INPUT_PER_1K / 1000 + o * COMPLETION_OUTPUT_PER_1K / 1000
        for i, o in calls
    )


def _estimate(profile: str) -> CostEstimate:
    calls, characters, duration = _PROFILES[profile]
    completion_cost = _completion_cost(calls)
    speech_cost = characters * SPEECH_HD_PER_1M / 1_000_000
    return CostEstimate(
        completion_tokens=sum(i + o for i, o in calls),
        completion_cost=completion_cost,
        speech_characters=characters,
        speech_cost=speech_cost,
        total_cost=completion_cost + speech_cost,
        estimated_duration=duration,
    )


def estimate_cost(format: str, node_count: int = 10) -> CostEstimate:
    """Estimate for one episode; adventures scale with node_count."""
    if format in ("narrative", "interview", "debate"):
        return _estimate(format)
    if format != "adventure":
        raise ValueError(f"Unknown episode format: {format}")
    if node_count < 1:
        raise ValueError("node_count must be at least 1")

    node = _estimate("adventure_node")
    outline_cost = _completion_cost([_ADVENTURE_OUTLINE_CALL])
    completion_cost = outline_cost + node.completion_cost * node_count
    speech_cost = node.speech_cost * node_count
    return CostEstimate(
        completion_tokens=sum(_ADVENTURE_OUTLINE_CALL) + node.completion_tokens * node_count,
        completion_cost=completion_cost,
        speech_characters=node.speech_characters * node_count,
        speech_cost=speech_cost,
        total_cost=completion_cost + speech_cost,
        estimated_duration=node.estimated_duration * node_count,
    )


def format_estimate(estimate: CostEstimate) -> str:
    """e.g. "$0.20 (~10 min)"."""
    minutes = math.ceil(estimate.estimated_duration / 60)
    return f"${estimate.total_cost:.2f} (~{minutes} min)"
