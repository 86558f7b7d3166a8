"""Tests for storycast.pipeline.orchestrator: stage flow, persistence, failure."""

import asyncio

import pytest

from storycast.audio import AudioAssembler
from storycast.errors import InvalidTransition, ProviderError, RetryExhaustedError
from storycast.models import Episode, EpisodeStatus
from storycast.pipeline.formats import EpisodeRequest
from storycast.pipeline.orchestrator import GenerationProgress, publish_episode, run_episode
from storycast.storage import Storage

from stubs import (
    NARRATIVE_TRANSCRIPT,
    StubCodec,
    StubContent,
    StubObjectStore,
    StubSpeech,
    debate_outline_reply,
    debate_script_reply,
    interview_outline_reply,
    interview_script_reply,
    narrative_outline_reply,
    narrative_script_reply,
)

pytestmark = pytest.mark.usefixtures("no_backoff")


class RecordingStorage(Storage):
    """Storage that remembers the status of every episode write."""

    def __init__(self, base_path) -> None:
        super().__init__(base_path)
        self.statuses: list[EpisodeStatus] = []

    def save_episode(self, episode: Episode) -> None:
        self.statuses.append(episode.status)
        super().save_episode(episode)


@pytest.fixture
def recording_storage(tmp_path) -> RecordingStorage:
    return RecordingStorage(tmp_path / "data")


def _narrative_content() -> StubContent:
    return StubContent({
        "narrative_outline": [narrative_outline_reply()],
        "narrative_script": [narrative_script_reply()],
    })


async def _run(request, storage, content, speech, assembler, object_store, **kwargs) -> Episode:
    return await run_episode(
        request,
        storage=storage,
        content=content,
        speech=speech,
        assembler=assembler,
        object_store=object_store,
        **kwargs,
    )


class TestNarrativeEpisode:
    async def test_happy_path(
        self, recording_storage: RecordingStorage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        content = _narrative_content()
        request = EpisodeRequest(topic="John Harrison", era="18th century", target_duration=600)
        episode = await _run(request, recording_storage, content, speech, assembler, object_store)

        content.assert_exhausted()
        assert content.stages() == ["narrative_outline", "narrative_script"]
        assert episode.status == EpisodeStatus.READY
        assert episode.title == "The Longitude Problem"
        assert episode.subtitle == "How a clockmaker beat the astronomers"
        assert episode.transcript == NARRATIVE_TRANSCRIPT
        assert episode.word_count == 13
        assert episode.sources == [{"title": "Longitude", "author": "Dava Sobel", "year": 1995, "type": "book"}]
        assert episode.outline["sections"][0]["act"] == "hook"
        assert episode.published_at is not None
        assert episode.error_msg is None

        assert speech.calls == [(NARRATIVE_TRANSCRIPT, "onyx", 1.0)]
        assert episode.audio is not None
        assert episode.audio.url == f"memory://{episode.guid}.mp3"
        assert episode.audio.mime_type == "audio/mpeg"
        assert episode.audio.bytes == len(object_store.uploads[f"{episode.guid}.mp3"])
        assert episode.audio.duration == 5  # 13 words at 150 wpm

        stored = recording_storage.require_episode(episode.id)
        assert stored.status == EpisodeStatus.READY
        assert stored.audio == episode.audio

    async def test_status_persisted_before_each_stage(
        self, recording_storage: RecordingStorage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        request = EpisodeRequest(topic="John Harrison")
        await _run(request, recording_storage, _narrative_content(), speech, assembler, object_store)
        order = list(dict.fromkeys(recording_storage.statuses))
        assert order == [
            EpisodeStatus.GENERATING_OUTLINE,
            EpisodeStatus.GENERATING_SCRIPT,
            EpisodeStatus.GENERATING_AUDIO,
            EpisodeStatus.PROCESSING,
            EpisodeStatus.READY,
        ]

    async def test_progress_reports(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        seen: list[GenerationProgress] = []
        await _run(EpisodeRequest(topic="t"), storage, _narrative_content(), speech,
                   assembler, object_store, on_progress=seen.append)
        assert [p.percent for p in seen] == [10, 35, 60, 85, 100]
        assert [p.stage for p in seen] == ["outline", "script", "audio", "upload", "publish"]

    async def test_coroutine_observer_not_awaited(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        seen: list[int] = []

        async def observer(progress: GenerationProgress) -> None:
            await asyncio.sleep(3600)
            seen.append(progress.percent)

        with caplog.at_level("WARNING", logger="storycast.pipeline.orchestrator"):
            episode = await asyncio.wait_for(
                _run(EpisodeRequest(topic="t"), storage, _narrative_content(), speech,
                     assembler, object_store, on_progress=observer),
                timeout=5,
            )
        assert episode.status == EpisodeStatus.READY
        assert seen == []
        assert "observers must be plain functions" in caplog.text

    async def test_failing_observer_does_not_change_outcome(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        def observer(progress: GenerationProgress) -> None:
            raise RuntimeError("dashboard down")

        episode = await _run(EpisodeRequest(topic="t"), storage, _narrative_content(), speech,
                             assembler, object_store, on_progress=observer)
        assert episode.status == EpisodeStatus.READY

    async def test_long_transcript_chunked(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, codec: StubCodec, object_store: StubObjectStore,
    ) -> None:
        script = narrative_script_reply()
        script["transcript"] = "This sentence repeats to fill the buffer. " * 200
        content = StubContent({
            "narrative_outline": [narrative_outline_reply()],
            "narrative_script": [script],
        })
        await _run(EpisodeRequest(topic="t"), storage, content, speech, assembler, object_store)
        assert len(speech.calls) == 3
        assert all(len(text) <= 4096 for text, _, _ in speech.calls)
        # narrative joins without silence
        assert codec.silence_calls == []


class TestFailure:
    async def test_provider_failure_marks_failed(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        content = StubContent({
            "narrative_outline": [narrative_outline_reply()],
            "narrative_script": [ProviderError("invalid api key", status=401)],
        })
        existing = Episode(topic="t")
        with pytest.raises(ProviderError):
            await _run(EpisodeRequest(topic="t"), storage, content, speech, assembler,
                       object_store, episode=existing)
        stored = storage.require_episode(existing.id)
        assert stored.status == EpisodeStatus.FAILED
        assert stored.error_msg == "invalid api key"
        assert stored.title == "The Longitude Problem"  # outline output kept
        assert stored.script is None
        assert object_store.uploads == {}

    async def test_transient_errors_retried_inside_stage(
        self, storage: Storage, assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        speech = StubSpeech(failures=[ProviderError("busy", status=503)] * 2)
        episode = await _run(EpisodeRequest(topic="t"), storage, _narrative_content(),
                             speech, assembler, object_store)
        assert episode.status == EpisodeStatus.READY
        assert len(speech.calls) == 3

    async def test_speech_exhaustion_fails_episode(
        self, storage: Storage, assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        speech = StubSpeech(failures=[ProviderError("rate limited", status=429)] * 6)
        existing = Episode(topic="t")
        with pytest.raises(RetryExhaustedError):
            await _run(EpisodeRequest(topic="t"), storage, _narrative_content(), speech,
                       assembler, object_store, episode=existing)
        stored = storage.require_episode(existing.id)
        assert stored.status == EpisodeStatus.FAILED
        assert stored.error_msg == "Max retries (5) exceeded. Last error: rate limited"
        assert len(speech.calls) == 6

    async def test_codec_failure_degrades_instead_of_failing(
        self, storage: Storage, object_store: StubObjectStore,
    ) -> None:
        content = StubContent({
            "interview_outline": [interview_outline_reply()],
            "interview_script": [interview_script_reply()],
        })
        speech = StubSpeech()
        request = EpisodeRequest(format="interview", topic="Radioactivity", guest_name="Marie Curie")
        episode = await _run(request, storage, content, speech,
                             AudioAssembler(StubCodec(fail=True)), object_store)
        assert episode.status == EpisodeStatus.READY
        assert object_store.uploads[f"{episode.guid}.mp3"] == b"".join(
            f"<{voice}:{text}>".encode() for text, voice, _ in speech.calls
        )

    async def test_only_new_episodes_run(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, object_store: StubObjectStore,
    ) -> None:
        done = Episode(topic="t", status=EpisodeStatus.READY)
        with pytest.raises(InvalidTransition):
            await _run(EpisodeRequest(topic="t"), storage, _narrative_content(), speech,
                       assembler, object_store, episode=done)


class TestOtherFormats:
    async def test_interview(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, codec: StubCodec, object_store: StubObjectStore,
    ) -> None:
        content = StubContent({
            "interview_outline": [interview_outline_reply()],
            "interview_script": [interview_script_reply()],
        })
        request = EpisodeRequest(format="interview", topic="Radioactivity", guest_name="Marie Curie")
        episode = await _run(request, storage, content, speech, assembler, object_store)
        assert episode.title == "Interview with Marie Curie: Radioactivity"
        assert episode.subtitle == "The cost of discovery"
        assert episode.transcript.startswith("HOST: Welcome to the show.\n\nHOST: What drew")
        assert [voice for _, voice, _ in speech.calls] == ["onyx", "onyx", "nova", "onyx"]
        assert codec.silence_calls == [0.3]

    async def test_debate(
        self, storage: Storage, speech: StubSpeech,
        assembler: AudioAssembler, codec: StubCodec, object_store: StubObjectStore,
    ) -> None:
        content = StubContent({
            "debate_outline": [debate_outline_reply()],
            "debate_script": [debate_script_reply()],
        })
        request = EpisodeRequest(format="debate", topic="French Revolution",
                                 question="Was the Terror necessary?")
        episode = await _run(request, storage, content, speech, assembler, object_store)
        assert episode.title == "Debate: Was the Terror necessary?"
        assert episode.subtitle == "Necessary vs Unnecessary"
        assert [voice for _, voice, _ in speech.calls] == ["alloy", "fable", "alloy", "nova", "alloy"]
        assert codec.silence_calls == [0.5]
        assert len(episode.sources) == 6


class TestPublish:
    def test_ready_to_published(self, storage: Storage) -> None:
        episode = Episode(topic="t", status=EpisodeStatus.READY)
        storage.save_episode(episode)
        published = publish_episode(storage, episode.id)
        assert published.status == EpisodeStatus.PUBLISHED
        assert published.published_at is not None
        assert storage.require_episode(episode.id).status == EpisodeStatus.PUBLISHED

    def test_failed_cannot_publish(self, storage: Storage) -> None:
        episode = Episode(topic="t", status=EpisodeStatus.FAILED)
        storage.save_episode(episode)
        with pytest.raises(InvalidTransition):
            publish_episode(storage, episode.id)
