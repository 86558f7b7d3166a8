"""Tests for storycast.speech: chunking, HttpSpeechProvider, sequential synthesis."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from storycast.errors import ProviderError
from storycast.models import AudioSegment
from storycast.speech import (
    MAX_INPUT_CHARS,
    HttpSpeechProvider,
    chunk_text,
    split_segment,
    synthesize_segments,
)

from stubs import StubSpeech


class TestChunkText:
    def test_short_text_single_chunk(self) -> None:
        assert chunk_text("Hello there.") == ["Hello there."]

    def test_empty(self) -> None:
        assert chunk_text("   ") == []

    def test_splits_on_sentences(self) -> None:
        text = "One two. Three four. Five six."
        assert chunk_text(text, limit=20) == ["One two. Three four.", "Five six."]

    def test_long_sentence_splits_on_words(self) -> None:
        chunks = chunk_text("alpha beta gamma delta epsilon", limit=12)
        assert chunks == ["alpha beta", "gamma delta", "epsilon"]

    def test_giant_word_cut_hard(self) -> None:
        assert chunk_text("x" * 25, limit=10) == ["x" * 10, "x" * 10, "x" * 5]

    def test_chunks_never_exceed_limit(self) -> None:
        text = " ".join(f"Sentence number {i} has a few words in it." for i in range(500))
        chunks = chunk_text(text)
        assert len(chunks) > 1
        assert all(len(c) <= MAX_INPUT_CHARS for c in chunks)
        assert " ".join(chunks) == text

    def test_split_segment_keeps_voice(self) -> None:
        segment = AudioSegment(speaker="HOST", voice="onyx", text="A b. C d.", speed=1.0)
        parts = split_segment(segment, limit=5)
        assert [p.text for p in parts] == ["A b.", "C d."]
        assert all(p.voice == "onyx" and p.speaker == "HOST" for p in parts)


def _audio_response(content: bytes = b"ID3mp3", status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.json.return_value = {}
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


class TestHttpSpeechProvider:
    @pytest.fixture
    def provider(self) -> HttpSpeechProvider:
        return HttpSpeechProvider(base_url="http://tts.local", api_key="k", model="tts-1-hd")

    async def test_happy_path(self, provider: HttpSpeechProvider) -> None:
        mock_post = AsyncMock(return_value=_audio_response())
        with patch("httpx.AsyncClient.post", mock_post):
            audio = await provider("Hello.", "nova", 0.95)
        assert audio == b"ID3mp3"
        assert mock_post.call_args[0][0] == "http://tts.local/v1/audio/speech"
        assert mock_post.call_args.kwargs["json"] == {
            "model": "tts-1-hd",
            "input": "Hello.",
            "voice": "nova",
            "speed": 0.95,
            "response_format": "mp3",
        }

    @pytest.mark.parametrize("speed", [0.2, 4.5])
    async def test_speed_out_of_range(self, provider: HttpSpeechProvider, speed: float) -> None:
        with pytest.raises(ValueError):
            await provider("Hello.", "nova", speed)

    async def test_unknown_voice(self, provider: HttpSpeechProvider) -> None:
        with pytest.raises(ValueError, match="Unknown voice"):
            await provider("Hello.", "bob", 1.0)

    async def test_input_over_limit(self, provider: HttpSpeechProvider) -> None:
        with pytest.raises(ValueError):
            await provider("x" * (MAX_INPUT_CHARS + 1), "nova", 1.0)

    async def test_server_error_is_retryable(self, provider: HttpSpeechProvider) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_audio_response(status=500))):
            with pytest.raises(ProviderError) as exc_info:
                await provider("Hello.", "nova", 1.0)
        assert exc_info.value.status == 500

    async def test_empty_body(self, provider: HttpSpeechProvider) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_audio_response(b""))):
            with pytest.raises(ProviderError, match="no audio"):
                await provider("Hello.", "nova", 1.0)


@pytest.mark.usefixtures("no_backoff")
class TestSynthesizeSegments:
    async def test_in_order(self) -> None:
        speech = StubSpeech()
        segments = [
            AudioSegment(speaker="HOST", voice="onyx", text="first"),
            AudioSegment(speaker="GUEST", voice="echo", text="second", speed=0.95),
        ]
        result = await synthesize_segments(speech, segments)
        assert result == [b"<onyx:first>", b"<echo:second>"]
        assert speech.calls == [("first", "onyx", 1.0), ("second", "echo", 0.95)]

    async def test_retries_each_segment(self) -> None:
        speech = StubSpeech(failures=[ProviderError("reset", code="ECONNRESET")])
        result = await synthesize_segments(
            speech, [AudioSegment(speaker="N", voice="onyx", text="only")],
        )
        assert result == [b"<onyx:only>"]
        assert len(speech.calls) == 2

    async def test_terminal_error_stops(self) -> None:
        speech = StubSpeech(failures=[ProviderError("bad voice", status=400)])
        with pytest.raises(ProviderError):
            await synthesize_segments(speech, [
                AudioSegment(speaker="N", voice="onyx", text="a"),
                AudioSegment(speaker="N", voice="onyx", text="b"),
            ])
        assert len(speech.calls) == 1
