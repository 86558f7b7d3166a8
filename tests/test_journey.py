"""Tests for storycast.adventure.journey: traversal and persisted choices."""

from datetime import datetime, timezone

import pytest

from storycast.adventure.journey import (
    choose,
    open_journey,
    path_history,
    start_journey,
    submit_choice,
)
from storycast.errors import (
    GraphValidationError,
    InvalidChoice,
    JourneyCompleted,
    NotFound,
    StaleJourneyError,
)
from storycast.models import NarrativeGraph
from storycast.storage import Storage

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestStartJourney:
    def test_starts_at_start_node(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "listener-1")
        assert journey.graph_id == graph.id
        assert journey.listener_id == "listener-1"
        assert journey.current_node_id == "start"
        assert journey.path == []
        assert not journey.is_completed
        assert journey.version == 0

    def test_graph_without_start(self, graph: NarrativeGraph) -> None:
        graph.nodes = [n for n in graph.nodes if n.node_type != "START"]
        with pytest.raises(GraphValidationError, match="found 0"):
            start_journey(graph, "listener-1")


class TestChoose:
    def test_advances_and_records_path(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        moved = choose(journey, graph, "start:0", now=NOW)
        assert moved.current_node_id == "d1"
        assert len(moved.path) == 1
        entry = moved.path[0]
        assert (entry.node_id, entry.choice_id, entry.choice_text) == ("start", "start:0", "Go to d1")
        assert entry.timestamp == NOW
        assert moved.version == 1
        assert not moved.is_completed
        assert moved.completed_at is None

    def test_input_never_mutated(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        before = journey.model_dump()
        choose(journey, graph, "start:0")
        assert journey.model_dump() == before

    def test_invalid_choice(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        with pytest.raises(InvalidChoice, match='"d1:0" is not available at node "start"'):
            choose(journey, graph, "d1:0")
        assert journey.current_node_id == "start"
        assert journey.path == []

    def test_reaching_ending_completes(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        for choice_id in ["start:0", "d1:1", "d3:0"]:
            journey = choose(journey, graph, choice_id, now=NOW)
        assert journey.current_node_id == "e2"
        assert journey.is_completed
        assert journey.completed_at == NOW
        assert len(journey.path) == 3
        assert journey.version == 3

    def test_completed_journey_rejects_choices(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        for choice_id in ["start:0", "d1:1", "d3:0"]:
            journey = choose(journey, graph, choice_id)
        with pytest.raises(JourneyCompleted):
            choose(journey, graph, "d3:0")

    def test_story_node_then_decision(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        for choice_id in ["start:0", "d1:0", "d2:0", "s1:0", "d4:1"]:
            journey = choose(journey, graph, choice_id)
        assert journey.current_node_id == "e3"
        assert journey.is_completed
        assert [e.node_id for e in journey.path] == ["start", "d1", "d2", "s1", "d4"]

    def test_wrong_graph(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l").model_copy(update={"graph_id": "other"})
        with pytest.raises(ValueError):
            choose(journey, graph, "start:0")


class TestPathHistory:
    def test_choice_texts_in_order(self, graph: NarrativeGraph) -> None:
        journey = start_journey(graph, "l")
        journey = choose(journey, graph, "start:0")
        journey = choose(journey, graph, "d1:1")
        assert path_history(journey) == ["Go to d1", "Go to d3"]

    def test_empty(self, graph: NarrativeGraph) -> None:
        assert path_history(start_journey(graph, "l")) == []


class TestSubmitChoice:
    def test_persists_choice(self, storage: Storage, stored_graph: NarrativeGraph) -> None:
        journey = open_journey(storage, stored_graph.id, "l")
        updated = submit_choice(storage, journey.id, "start:0")
        assert updated.current_node_id == "d1"
        stored = storage.get_journey(journey.id)
        assert stored is not None
        assert stored.current_node_id == "d1"
        assert stored.version == 1

    def test_stale_write_rejected(self, storage: Storage, stored_graph: NarrativeGraph) -> None:
        journey = open_journey(storage, stored_graph.id, "l")
        first = choose(journey, stored_graph, "start:0")
        second = choose(journey, stored_graph, "start:0")
        storage.save_journey(first, expected_version=journey.version)
        with pytest.raises(StaleJourneyError):
            storage.save_journey(second, expected_version=journey.version)
        assert storage.require_journey(journey.id).version == 1

    def test_invalid_choice_leaves_store_untouched(
        self, storage: Storage, stored_graph: NarrativeGraph,
    ) -> None:
        journey = open_journey(storage, stored_graph.id, "l")
        with pytest.raises(InvalidChoice):
            submit_choice(storage, journey.id, "nope")
        assert storage.require_journey(journey.id).model_dump() == journey.model_dump()

    def test_unknown_journey(self, storage: Storage) -> None:
        with pytest.raises(NotFound):
            submit_choice(storage, "missing", "start:0")

    def test_open_unknown_adventure(self, storage: Storage) -> None:
        with pytest.raises(NotFound):
            open_journey(storage, "missing", "l")
