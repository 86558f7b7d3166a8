from pathlib import Path

import pytest

from storycast.audio import AudioAssembler
from storycast.models import NarrativeGraph
from storycast.storage import Storage

from stubs import StubCodec, StubObjectStore, StubSpeech, make_graph


@pytest.fixture
def no_backoff(monkeypatch):
    """Make every retry backoff zero milliseconds."""
    monkeypatch.setattr("storycast.retry.compute_delay", lambda *args, **kwargs: 0.0)


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    return Storage(tmp_path / "data")


@pytest.fixture
def graph() -> NarrativeGraph:
    return make_graph()


@pytest.fixture
def stored_graph(storage: Storage, graph: NarrativeGraph) -> NarrativeGraph:
    storage.save_graph(graph)
    return graph


@pytest.fixture
def speech() -> StubSpeech:
    return StubSpeech()


@pytest.fixture
def codec() -> StubCodec:
    return StubCodec()


@pytest.fixture
def assembler(codec: StubCodec) -> AudioAssembler:
    return AudioAssembler(codec)


@pytest.fixture
def object_store() -> StubObjectStore:
    return StubObjectStore()
