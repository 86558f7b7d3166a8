"""Speech synthesis: text segments to encoded audio.

The pipeline injects a speech provider matching the protocol:

    async def __call__(self, text: str, voice: str, speed: float) -> bytes: ...

The speech backend accepts at most MAX_INPUT_CHARS characters per call, so
long text is split with chunk_text() / split_segment() before synthesis.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

import httpx

from storycast.errors import ProviderError
from storycast.llm import http_error
from storycast.models import AudioSegment
from storycast.retry import SPEECH_POLICY, RetryPolicy, execute
from storycast.voices import VOICES, check_speed, is_valid_voice

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 4096

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class SpeechProvider(Protocol):
    async def __call__(self, text: str, voice: str, speed: float) -> bytes: ...


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

def chunk_text(text: str, limit: int = MAX_INPUT_CHARS) -> list[str]:
    """Split text into chunks of at most limit characters.

    Splits at sentence boundaries where possible, then at word boundaries;
    a single word longer than limit is cut hard.
    """
    text = text.strip()
    if not text:
        return []
    if len(text) <= limit:
        return [text]

    pieces: list[str] = []
    for sentence in _SENTENCE_END.split(text):
        if len(sentence) <= limit:
            pieces.append(sentence)
            continue
        for word in sentence.split():
            while len(word) > limit:
                pieces.append(word[:limit])
                word = word[limit:]
            if word:
                pieces.append(word)

    chunks: list[str] = []
    current = ""
    for piece in pieces:
        if not current:
            current = piece
        elif len(current) + 1 + len(piece) <= limit:
            current = f"{current} {piece}"
        else:
            chunks.append(current)
            current = piece
    if current:
        chunks.append(current)
    return chunks


def split_segment(segment: AudioSegment, limit: int = MAX_INPUT_CHARS) -> list[AudioSegment]:
    """One segment per text chunk, same speaker, voice and speed."""
    return [
        segment.model_copy(update={"text": chunk})
        for chunk in chunk_text(segment.text, limit)
    ]


# ---------------------------------------------------------------------------
# HttpSpeechProvider
# ---------------------------------------------------------------------------

class HttpSpeechProvider:
    """Async client for OpenAI-compatible speech backends.

    POST {base_url}/v1/audio/speech and return the MP3 body.

    Args:
        base_url: Base URL of the backend, e.g. "https://api.openai.com".
        api_key:  Bearer token, or empty string if not required.
        model:    Speech model identifier.
        timeout:  HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "tts-1-hd",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def __call__(self, text: str, voice: str, speed: float) -> bytes:
        if not is_valid_voice(voice):
            raise ValueError(f"Unknown voice {voice!r}; expected one of {', '.join(VOICES)}")
        check_speed(speed)
        if not text.strip():
            raise ValueError("Cannot synthesize empty text")
        if len(text) > MAX_INPUT_CHARS:
            raise ValueError(f"Speech input is {len(text)} characters; limit is {MAX_INPUT_CHARS}")

        url = f"{self._base_url}/v1/audio/speech"
        body = {
            "model": self._model,
            "input": text,
            "voice": voice,
            "speed": speed,
            "response_format": "mp3",
        }
        logger.debug("speech call voice=%s speed=%.2f text_len=%d", voice, speed, len(text))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise http_error(e, "Speech backend", self._timeout) from e

        audio = resp.content
        if not audio:
            raise ProviderError("Speech backend returned no audio", type="invalid_response")
        return audio


# ---------------------------------------------------------------------------
# Retrying synthesis
# ---------------------------------------------------------------------------

async def synthesize_segment(
    speech: SpeechProvider,
    segment: AudioSegment,
    policy: RetryPolicy = SPEECH_POLICY,
) -> bytes:
    return await execute(lambda: speech(segment.text, segment.voice, segment.speed), policy)


async def synthesize_segments(
    speech: SpeechProvider,
    segments: list[AudioSegment],
    policy: RetryPolicy = SPEECH_POLICY,
) -> list[bytes]:
    """Synthesize segments one at a time, in order.

    Calls are sequential to stay under the speech backend's rate limits.
    """
    results: list[bytes] = []
    for i, segment in enumerate(segments, 1):
        logger.debug("Synthesizing segment %d/%d (%s)", i, len(segments), segment.speaker)
        results.append(await synthesize_segment(speech, segment, policy))
    return results
