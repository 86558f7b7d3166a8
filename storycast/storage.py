"""JSON file storage and the local object store.

All records are stored as flat JSON files under a configurable base
directory. There is no database or ORM: reads and writes go through plain
helper methods that load and dump pydantic models.

Directory layout:

    {base}/
      episodes/
        {id}.json             ← Episode
      adventures/
        {id}.json             ← NarrativeGraph, with generated node content
      journeys/
        {id}.json             ← Journey

Uploaded audio goes to FileObjectStore, which writes files under a media
directory and returns public URLs for them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel

from storycast.errors import NotFound, StaleJourneyError
from storycast.models import Episode, Journey, NarrativeGraph, Node

logger = logging.getLogger(__name__)


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._episodes = base_path / "episodes"
        self._adventures = base_path / "adventures"
        self._journeys = base_path / "journeys"
        for d in (self._episodes, self._adventures, self._journeys):
            d.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_model(self, path: Path, model: BaseModel) -> None:
        path.write_text(model.model_dump_json(indent=2))

    def _list(self, directory: Path) -> list[Path]:
        return sorted(directory.glob("*.json"))

    # ------------------------------------------------------------------
    # Episodes
    # ------------------------------------------------------------------

    def save_episode(self, episode: Episode) -> None:
        self._write_model(self._episodes / f"{episode.id}.json", episode)

    def get_episode(self, episode_id: str) -> Episode | None:
        path = self._episodes / f"{episode_id}.json"
        if not path.exists():
            return None
        return Episode.model_validate_json(path.read_text())

    def require_episode(self, episode_id: str) -> Episode:
        episode = self.get_episode(episode_id)
        if episode is None:
            raise NotFound(f"Episode {episode_id} not found")
        return episode

    def list_episodes(self) -> list[Episode]:
        episodes = [Episode.model_validate(self._read_json(p)) for p in self._list(self._episodes)]
        return sorted(episodes, key=lambda e: e.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Adventures
    # ------------------------------------------------------------------

    def save_graph(self, graph: NarrativeGraph) -> None:
        self._write_model(self._adventures / f"{graph.id}.json", graph)

    def get_graph(self, graph_id: str) -> NarrativeGraph | None:
        path = self._adventures / f"{graph_id}.json"
        if not path.exists():
            return None
        return NarrativeGraph.model_validate_json(path.read_text())

    def require_graph(self, graph_id: str) -> NarrativeGraph:
        graph = self.get_graph(graph_id)
        if graph is None:
            raise NotFound(f"Adventure {graph_id} not found")
        return graph

    def list_graphs(self) -> list[NarrativeGraph]:
        return [NarrativeGraph.model_validate(self._read_json(p)) for p in self._list(self._adventures)]

    def save_node_content(self, graph_id: str, node: Node) -> None:
        """Write one node's generated script and audio back to its graph.

        Only the generated fields are taken from node; graph structure is
        never changed here.
        """
        graph = self.require_graph(graph_id)
        stored = graph.node(node.id)
        if stored is None:
            raise NotFound(f"Node {node.id} not found in adventure {graph_id}")
        stored.script = node.script
        stored.audio = node.audio
        self.save_graph(graph)

    # ------------------------------------------------------------------
    # Journeys
    # ------------------------------------------------------------------

    def get_journey(self, journey_id: str) -> Journey | None:
        path = self._journeys / f"{journey_id}.json"
        if not path.exists():
            return None
        return Journey.model_validate_json(path.read_text())

    def require_journey(self, journey_id: str) -> Journey:
        journey = self.get_journey(journey_id)
        if journey is None:
            raise NotFound(f"Journey {journey_id} not found")
        return journey

    def save_journey(self, journey: Journey, expected_version: int | None = None) -> None:
        """Write journey. With expected_version, only if the stored copy still
        has that version; otherwise StaleJourneyError.
        """
        path = self._journeys / f"{journey.id}.json"
        if expected_version is not None:
            current = self.get_journey(journey.id)
            stored_version = current.version if current else None
            if stored_version != expected_version:
                raise StaleJourneyError(
                    f"Journey {journey.id} is at version {stored_version}, "
                    f"expected {expected_version}"
                )
        self._write_model(path, journey)

    def list_journeys(self, listener_id: str | None = None) -> list[Journey]:
        journeys = [Journey.model_validate(self._read_json(p)) for p in self._list(self._journeys)]
        if listener_id is not None:
            journeys = [j for j in journeys if j.listener_id == listener_id]
        return journeys


# ---------------------------------------------------------------------------
# Object storage
# ---------------------------------------------------------------------------

class UploadResult(BaseModel):
    url: str
    bytes: int
    content_type: str


class ObjectStore(Protocol):
    async def upload(self, data: bytes, *, filename: str, content_type: str) -> UploadResult: ...


class FileObjectStore:
    """Writes uploads under media_dir and serves them from base_url."""

    def __init__(self, media_dir: Path, base_url: str) -> None:
        self._dir = media_dir
        self._base_url = base_url.rstrip("/")
        self._dir.mkdir(parents=True, exist_ok=True)

    async def upload(
        self, data: bytes, *, filename: str, content_type: str = "audio/mpeg"
    ) -> UploadResult:
        if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
            raise ValueError(f"Invalid upload filename: {filename!r}")
        (self._dir / filename).write_bytes(data)
        logger.info("Stored %s (%d bytes)", filename, len(data))
        return UploadResult(
            url=f"{self._base_url}/{filename}",
            bytes=len(data),
            content_type=content_type,
        )
