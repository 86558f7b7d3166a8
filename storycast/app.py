"""Runtime wiring: real providers and stores built from Settings.

    runtime = create_runtime(load_settings())
    episode = await runtime.generate_episode(EpisodeRequest(topic="..."))

Every operation is also usable directly with injected collaborators; this
module only bundles the production ones.
"""

from __future__ import annotations

import logging

from storycast.adventure.builder import build_adventure
from storycast.adventure.journey import open_journey, submit_choice
from storycast.adventure.nodes import ensure_node_content, produce_adventure
from storycast.audio import AudioAssembler, FfmpegCodec
from storycast.config import Settings, load_settings
from storycast.llm import HttpContentProvider
from storycast.models import Episode, Journey, NarrativeGraph, Node
from storycast.pipeline.formats import EpisodeRequest
from storycast.pipeline.orchestrator import ProgressListener, publish_episode, run_episode
from storycast.speech import HttpSpeechProvider
from storycast.storage import FileObjectStore, Storage

logger = logging.getLogger(__name__)


class Runtime:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.storage = Storage(settings.data_dir)
        self.object_store = FileObjectStore(settings.media_dir, settings.media_base_url)
        self.content = HttpContentProvider(
            settings.content_url,
            api_key=settings.content_api_key,
            model=settings.content_model,
            timeout=settings.timeout,
        )
        self.speech = HttpSpeechProvider(
            settings.speech_url,
            api_key=settings.speech_api_key,
            model=settings.speech_model,
            timeout=settings.timeout,
        )
        self.assembler = AudioAssembler(FfmpegCodec(settings.ffmpeg))

    # ------------------------------------------------------------------
    # Linear episodes
    # ------------------------------------------------------------------

    async def generate_episode(
        self, request: EpisodeRequest, on_progress: ProgressListener | None = None,
    ) -> Episode:
        return await run_episode(
            request,
            storage=self.storage,
            content=self.content,
            speech=self.speech,
            assembler=self.assembler,
            object_store=self.object_store,
            on_progress=on_progress,
        )

    def publish(self, episode_id: str) -> Episode:
        return publish_episode(self.storage, episode_id)

    # ------------------------------------------------------------------
    # Adventures
    # ------------------------------------------------------------------

    async def create_adventure(
        self, concept: str, historical_context: str, *, eager: bool = False,
    ) -> NarrativeGraph:
        """Build and store an adventure; with eager, narrate every node now."""
        if eager:
            return await produce_adventure(
                concept, historical_context,
                storage=self.storage, content=self.content, speech=self.speech,
                assembler=self.assembler, object_store=self.object_store,
            )
        return await build_adventure(
            concept, historical_context, storage=self.storage, content=self.content,
        )

    async def start(self, graph_id: str, listener_id: str) -> tuple[Journey, Node]:
        """Open a journey and return it with its (generated) START node."""
        journey = open_journey(self.storage, graph_id, listener_id)
        node = await self._node_for(journey)
        return journey, node

    async def choose(self, journey_id: str, choice_id: str) -> tuple[Journey, Node]:
        """Apply a choice and return the journey with the node it moved to."""
        journey = submit_choice(self.storage, journey_id, choice_id)
        node = await self._node_for(journey)
        return journey, node

    async def _node_for(self, journey: Journey) -> Node:
        return await ensure_node_content(
            self.storage, journey.graph_id, journey.current_node_id,
            content=self.content, speech=self.speech, assembler=self.assembler,
            object_store=self.object_store, journey=journey,
        )


def create_runtime(settings: Settings | None = None) -> Runtime:
    settings = settings or load_settings()
    logger.info("storycast data dir: %s", settings.data_dir)
    return Runtime(settings)
