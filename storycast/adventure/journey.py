"""Journey traversal: one listener's path through a narrative graph.

choose() is pure: it returns an updated copy and never mutates its input.
submit_choice() is the persisted variant; it saves with an optimistic
version check so two concurrent choices on the same journey cannot both
land.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from storycast.errors import (
    GraphValidationError,
    InvalidChoice,
    JourneyCompleted,
    NotFound,
)
from storycast.models import Journey, NarrativeGraph, Node, PathEntry
from storycast.storage import Storage

logger = logging.getLogger(__name__)


def start_journey(graph: NarrativeGraph, listener_id: str) -> Journey:
    start = graph.start_node()
    if start is None:
        starts = sum(1 for n in graph.nodes if n.node_type == "START")
        raise GraphValidationError([f"Must have exactly 1 START node, found {starts}"])
    return Journey(graph_id=graph.id, listener_id=listener_id, current_node_id=start.id)


def current_node(journey: Journey, graph: NarrativeGraph) -> Node:
    node = graph.node(journey.current_node_id)
    if node is None:
        raise NotFound(f"Node {journey.current_node_id} not found in adventure {graph.id}")
    return node


def choose(
    journey: Journey,
    graph: NarrativeGraph,
    choice_id: str,
    now: datetime | None = None,
) -> Journey:
    """Apply one choice; return the advanced journey.

    Raises JourneyCompleted if the journey already reached an ending and
    InvalidChoice if choice_id is not offered at the current node.
    """
    if journey.is_completed:
        raise JourneyCompleted(f"Journey {journey.id} is already completed")
    if journey.graph_id != graph.id:
        raise ValueError(f"Journey {journey.id} belongs to adventure {journey.graph_id}, not {graph.id}")

    node = current_node(journey, graph)
    choice = node.choice(choice_id)
    if choice is None:
        raise InvalidChoice(f'Choice "{choice_id}" is not available at node "{node.id}"')
    target = graph.node(choice.target_node_id)
    if target is None:
        raise NotFound(f"Node {choice.target_node_id} not found in adventure {graph.id}")

    now = now or datetime.now(timezone.utc)
    entry = PathEntry(
        node_id=node.id, choice_id=choice.id, choice_text=choice.text, timestamp=now,
    )
    completed = target.node_type == "ENDING"
    return journey.model_copy(update={
        "current_node_id": target.id,
        "path": [*journey.path, entry],
        "is_completed": completed,
        "completed_at": now if completed else None,
        "version": journey.version + 1,
    })


def path_history(journey: Journey) -> list[str]:
    """Text of every choice made so far, in order."""
    return [entry.choice_text for entry in journey.path]


# ---------------------------------------------------------------------------
# Persisted operations
# ---------------------------------------------------------------------------

def open_journey(storage: Storage, graph_id: str, listener_id: str) -> Journey:
    """Start and persist a new journey at the adventure's START node."""
    graph = storage.require_graph(graph_id)
    journey = start_journey(graph, listener_id)
    storage.save_journey(journey)
    logger.info("Journey %s started on adventure %s", journey.id, graph_id)
    return journey


def submit_choice(
    storage: Storage,
    journey_id: str,
    choice_id: str,
    now: datetime | None = None,
) -> Journey:
    """Load, advance and save a journey.

    Raises StaleJourneyError if the journey changed between load and save.
    """
    journey = storage.require_journey(journey_id)
    graph = storage.require_graph(journey.graph_id)
    updated = choose(journey, graph, choice_id, now)
    storage.save_journey(updated, expected_version=journey.version)
    if updated.is_completed:
        logger.info("Journey %s completed at %s", journey_id, updated.current_node_id)
    return updated
