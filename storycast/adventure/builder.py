"""Build a validated NarrativeGraph from a concept.

The content provider designs the node graph (AdventureOutline); the graph
is validated before anything is returned or stored. A graph that breaks the
structural rules raises GraphValidationError and is never retried: it is a
quality failure, not a transient one.
"""

from __future__ import annotations

import logging

from storycast.adventure.graph import require_valid
from storycast.llm import ContentProvider, generate
from storycast.models import Choice, NarrativeGraph, Node, Setting, Storyline
from storycast.prompts import prompt_for
from storycast.retry import COMPLETION_POLICY, RetryPolicy
from storycast.schemas import AdventureOutline
from storycast.storage import Storage

logger = logging.getLogger(__name__)


def graph_from_outline(outline: AdventureOutline) -> NarrativeGraph:
    """Map a provider outline onto the domain graph. Does not validate."""
    nodes = [
        Node(
            id=n.id,
            title=n.title,
            node_type=n.node_type,
            narrative=n.narrative,
            ending_type=n.ending_type,
            choices=[
                Choice(
                    id=f"{n.id}:{i}",
                    text=c.text,
                    description=c.description,
                    consequences=c.consequences,
                    target_node_id=c.next_node_id,
                )
                for i, c in enumerate(n.choices or [])
            ],
        )
        for n in outline.nodes
    ]
    return NarrativeGraph(
        title=outline.title,
        description=outline.description,
        setting=Setting.model_validate(outline.historical_setting.model_dump()),
        storyline=Storyline.model_validate(outline.storyline.model_dump()),
        nodes=nodes,
    )


async def build_graph(
    concept: str,
    historical_context: str,
    *,
    content: ContentProvider,
    policy: RetryPolicy = COMPLETION_POLICY,
) -> NarrativeGraph:
    """Request an adventure outline and return it as a validated graph."""
    prompt = prompt_for(
        "adventure_outline",
        {"concept": concept, "historical_context": historical_context},
    )
    outline = await generate(content, "adventure_outline", prompt, AdventureOutline, policy)
    graph = require_valid(graph_from_outline(outline))
    logger.info("Built adventure %r with %d nodes", graph.title, len(graph.nodes))
    return graph


def save_adventure(storage: Storage, graph: NarrativeGraph) -> NarrativeGraph:
    """Validate and persist a graph."""
    require_valid(graph)
    storage.save_graph(graph)
    return graph


async def build_adventure(
    concept: str,
    historical_context: str,
    *,
    storage: Storage,
    content: ContentProvider,
    policy: RetryPolicy = COMPLETION_POLICY,
) -> NarrativeGraph:
    graph = await build_graph(concept, historical_context, content=content, policy=policy)
    return save_adventure(storage, graph)
