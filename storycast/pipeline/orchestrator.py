"""Pipeline orchestrator: runs one linear episode end-to-end.

Episode flow (status persisted before each stage starts):
  1. outline  GENERATING_OUTLINE  request → format outline; title/subtitle
  2. script   GENERATING_SCRIPT   outline → script; transcript, sources, words
  3. audio    GENERATING_AUDIO    script → segments → sequential synthesis →
                                  assembly with the format's pause
  4. upload   PROCESSING          MP3 → object store as {guid}.mp3
  5. publish  READY               published_at stamped

Any stage failure persists FAILED with error_msg and re-raises. Provider
calls retry inside storycast.retry; the orchestrator itself never retries.

The optional progress observer receives GenerationProgress at 10/35/60/85
percent as each stage starts and 100 on completion. It is a plain function
called inline and must return quickly; hand slow work off to a task or queue.
Coroutine functions are not awaited. Observer errors are logged and ignored.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from storycast.audio import AudioAssembler
from storycast.errors import InvalidTransition
from storycast.llm import ContentProvider
from storycast.models import (
    STAGE_STATUS,
    AudioReference,
    Episode,
    EpisodeStatus,
    GenerationStage,
)
from storycast.pipeline.formats import EpisodeRequest, workflow_for
from storycast.retry import error_message
from storycast.speech import SpeechProvider, synthesize_segments
from storycast.storage import ObjectStore, Storage

logger = logging.getLogger(__name__)

STAGE_PERCENT: dict[str, int] = {
    "outline": 10,
    "script": 35,
    "audio": 60,
    "upload": 85,
    "publish": 100,
}


class GenerationProgress(BaseModel):
    episode_id: str
    stage: GenerationStage
    message: str
    percent: int = Field(ge=0, le=100)


ProgressListener = Callable[[GenerationProgress], None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _notify(
    on_progress: ProgressListener | None,
    episode: Episode,
    stage: GenerationStage,
    message: str,
) -> None:
    if on_progress is None:
        return
    progress = GenerationProgress(
        episode_id=episode.id, stage=stage, message=message, percent=STAGE_PERCENT[stage],
    )
    try:
        result = on_progress(progress)
    except Exception:
        logger.warning("Progress observer failed at stage %s", stage, exc_info=True)
        return
    if inspect.iscoroutine(result):
        result.close()
        logger.warning("Progress observer returned a coroutine at stage %s; observers must be "
                       "plain functions and it was not awaited", stage)


def _enter(storage: Storage, episode: Episode, stage: GenerationStage) -> None:
    episode.transition(STAGE_STATUS[stage])
    storage.save_episode(episode)
    logger.info("Episode %s: %s stage (%s)", episode.id, stage, episode.status.value)


def _fail(storage: Storage, episode: Episode, stage: GenerationStage, error: BaseException) -> None:
    logger.error("Episode %s failed at %s stage: %s", episode.id, stage, error_message(error))
    if episode.is_terminal:
        return
    episode.transition(EpisodeStatus.FAILED)
    episode.error_msg = error_message(error)
    try:
        storage.save_episode(episode)
    except OSError:
        logger.exception("Could not persist failure of episode %s", episode.id)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

async def run_episode(
    request: EpisodeRequest,
    *,
    storage: Storage,
    content: ContentProvider,
    speech: SpeechProvider,
    assembler: AudioAssembler,
    object_store: ObjectStore,
    on_progress: ProgressListener | None = None,
    episode: Episode | None = None,
) -> Episode:
    """Generate, upload and publish one episode; return it in READY.

    Pass episode to run an already-created record (it must still be in
    GENERATING_OUTLINE); otherwise a new one is created and persisted.
    """
    workflow = workflow_for(request.format)

    if episode is None:
        episode = Episode(format=request.format, topic=request.topic, era=request.era)
    elif episode.status != EpisodeStatus.GENERATING_OUTLINE:
        raise InvalidTransition(
            f"Episode {episode.id} is {episode.status.value}; only new episodes can be generated"
        )
    storage.save_episode(episode)

    stage: GenerationStage = "outline"
    try:
        # 1. Outline
        _notify(on_progress, episode, stage, "Researching and outlining")
        _enter(storage, episode, stage)
        outline = await workflow.outline(request, content=content)
        episode.title, episode.subtitle = workflow.headline(outline, request)
        episode.outline = outline.model_dump(mode="json")
        storage.save_episode(episode)

        # 2. Script
        stage = "script"
        _notify(on_progress, episode, stage, "Writing script")
        _enter(storage, episode, stage)
        script = await workflow.script(outline, request, content=content)
        artifacts = workflow.artifacts(script, outline, request)
        episode.title = artifacts.title
        episode.subtitle = artifacts.subtitle
        episode.script = script.model_dump(mode="json")
        episode.transcript = artifacts.transcript
        episode.sources = artifacts.sources
        episode.word_count = artifacts.word_count
        storage.save_episode(episode)

        # 3. Audio
        stage = "audio"
        _notify(on_progress, episode, stage, "Synthesizing audio")
        _enter(storage, episode, stage)
        segments = workflow.segments(script, request)
        buffers = await synthesize_segments(speech, segments)
        audio = await assembler.assemble_safe(buffers, workflow.pause_seconds)

        # 4. Upload
        stage = "upload"
        _notify(on_progress, episode, stage, "Uploading audio")
        _enter(storage, episode, stage)
        upload = await object_store.upload(
            audio, filename=f"{episode.guid}.mp3", content_type="audio/mpeg",
        )
        episode.audio = AudioReference(
            url=upload.url,
            bytes=upload.bytes,
            mime_type=upload.content_type,
            duration=artifacts.duration,
        )
        storage.save_episode(episode)

        # 5. Publish
        stage = "publish"
        episode.published_at = datetime.now(timezone.utc)
        _enter(storage, episode, stage)
    except Exception as e:
        _fail(storage, episode, stage, e)
        raise

    _notify(on_progress, episode, "publish", "Episode ready")
    return episode


def publish_episode(storage: Storage, episode_id: str) -> Episode:
    """READY → PUBLISHED. Raises NotFound or InvalidTransition."""
    episode = storage.require_episode(episode_id)
    episode.transition(EpisodeStatus.PUBLISHED)
    if episode.published_at is None:
        episode.published_at = datetime.now(timezone.utc)
    storage.save_episode(episode)
    logger.info("Episode %s published", episode_id)
    return episode
