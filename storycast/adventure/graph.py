"""Structural checks for narrative graphs.

validate_graph() runs every check and reports every violation:

    Duplicate node ids: a, b
    Must have exactly 1 START node, found N
    Should have at least 3 ENDING nodes, found N
    Node "<id>" has choice pointing to non-existent node "<target>"
    Unreachable nodes: a, b
    Node "<id>" is a DECISION node with N choices (expected 2-3)
    Node "<id>" is an ENDING node but has N choices
    Cycle detected: a -> b -> a

Reachability is a breadth-first search from the START node over the
adjacency view; with no START node every node is unreachable.
"""

from __future__ import annotations

from collections import deque

from pydantic import BaseModel, Field

from storycast.errors import GraphValidationError
from storycast.models import NarrativeGraph

MIN_ENDINGS = 3
MIN_DECISION_CHOICES = 2
MAX_DECISION_CHOICES = 3


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


def adjacency(graph: NarrativeGraph) -> dict[str, list[str]]:
    """Node id → choice target ids, in choice order."""
    return {node.id: [c.target_node_id for c in node.choices] for node in graph.nodes}


def reachable_from(adj: dict[str, list[str]], start: str | None) -> set[str]:
    """Ids of nodes in adj reachable from start (start included)."""
    if start is None or start not in adj:
        return set()
    seen = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for target in adj.get(current, []):
            if target in adj and target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def find_cycle(adj: dict[str, list[str]]) -> list[str] | None:
    """First cycle found as a closed path [a, b, ..., a], or None."""
    done: set[str] = set()
    for root in adj:
        if root in done:
            continue
        path: list[str] = [root]
        on_path = {root}
        stack = [iter(adj[root])]
        while stack:
            target = next(stack[-1], None)
            if target is None:
                stack.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if target not in adj or target in done:
                continue
            if target in on_path:
                return path[path.index(target):] + [target]
            path.append(target)
            on_path.add(target)
            stack.append(iter(adj[target]))
    return None


def validate_graph(graph: NarrativeGraph) -> ValidationResult:
    errors: list[str] = []
    nodes = graph.nodes
    ids = [n.id for n in nodes]

    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        errors.append(f"Duplicate node ids: {', '.join(duplicates)}")

    starts = [n for n in nodes if n.node_type == "START"]
    if len(starts) != 1:
        errors.append(f"Must have exactly 1 START node, found {len(starts)}")
    endings = [n for n in nodes if n.node_type == "ENDING"]
    if len(endings) < MIN_ENDINGS:
        errors.append(f"Should have at least {MIN_ENDINGS} ENDING nodes, found {len(endings)}")

    known = set(ids)
    for node in nodes:
        for choice in node.choices:
            if choice.target_node_id not in known:
                errors.append(
                    f'Node "{node.id}" has choice pointing to non-existent node '
                    f'"{choice.target_node_id}"'
                )

    adj = adjacency(graph)
    reachable = reachable_from(adj, starts[0].id if starts else None)
    unreachable = [i for i in dict.fromkeys(ids) if i not in reachable]
    if unreachable:
        errors.append(f"Unreachable nodes: {', '.join(unreachable)}")

    for node in nodes:
        count = len(node.choices)
        if node.node_type == "DECISION" and not (
            MIN_DECISION_CHOICES <= count <= MAX_DECISION_CHOICES
        ):
            errors.append(
                f'Node "{node.id}" is a DECISION node with {count} choices '
                f"(expected {MIN_DECISION_CHOICES}-{MAX_DECISION_CHOICES})"
            )
        if node.node_type == "ENDING" and count:
            errors.append(f'Node "{node.id}" is an ENDING node but has {count} choices')

    cycle = find_cycle(adj)
    if cycle:
        errors.append(f"Cycle detected: {' -> '.join(cycle)}")

    return ValidationResult(valid=not errors, errors=errors)


def require_valid(graph: NarrativeGraph) -> NarrativeGraph:
    """Return graph unchanged, or raise GraphValidationError with all errors."""
    result = validate_graph(graph)
    if not result.valid:
        raise GraphValidationError(result.errors)
    return graph
