"""Branching choose-your-path adventures.

  graph    structural validation (START, ENDINGs, dangling choices,
           reachability, choice counts, cycles)
  builder  concept → validated NarrativeGraph, persisted
  nodes    path-aware node scripts and narrated node audio, lazy or eager
  journey  per-listener traversal with optimistic concurrency
"""

from .builder import build_adventure, build_graph, save_adventure  # noqa: F401
from .graph import ValidationResult, adjacency, reachable_from, validate_graph  # noqa: F401
from .journey import (  # noqa: F401
    choose,
    open_journey,
    path_history,
    start_journey,
    submit_choice,
)
from .nodes import (  # noqa: F401
    ensure_node_content,
    generate_node_script,
    produce_adventure,
    render_node_audio,
)
