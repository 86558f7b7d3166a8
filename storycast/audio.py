"""Audio assembly: join synthesized segments into one playable MP3.

    assembler = AudioAssembler(FfmpegCodec())
    audio = await assembler.assemble([intro, body, outro], NODE_PAUSE)

With n segments and a positive pause, the joined stream is
    seg1, silence, seg2, silence, ..., segN
(n + n-1 inputs). The silence buffer is generated once and reused.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

from storycast.errors import AssemblyError

logger = logging.getLogger(__name__)

NARRATIVE_PAUSE = 0.0
INTERVIEW_PAUSE = 0.3
DEBATE_PAUSE = 0.5
NODE_PAUSE = 0.5

SAMPLE_RATE = 44100
BITRATE = "128k"


class AudioCodec(Protocol):
    async def silence(self, seconds: float) -> bytes: ...

    async def concat(self, parts: list[bytes]) -> bytes: ...


# ---------------------------------------------------------------------------
# ffmpeg
# ---------------------------------------------------------------------------

def _ffconcat_line(path: Path) -> str:
    escaped = str(path).replace("\\", "\\\\").replace("'", "'\\''")
    return f"file '{escaped}'\n"


class FfmpegCodec:
    """Silence generation and lossless concatenation with the ffmpeg binary.

    ffmpeg runs in a worker thread so the event loop is never blocked.
    """

    def __init__(self, ffmpeg: str = "ffmpeg") -> None:
        self._ffmpeg = ffmpeg

    def _run(self, args: list[str], description: str) -> None:
        cmd = [self._ffmpeg, "-hide_banner", "-loglevel", "error", "-y", *args]
        logger.debug("ffmpeg: %s", description)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise AssemblyError(f"{description} failed: cannot run {self._ffmpeg}: {e}") from e
        if result.returncode != 0:
            raise AssemblyError(
                f"{description} failed (exit {result.returncode}): {result.stderr[-500:]}"
            )

    def _silence_sync(self, seconds: float) -> bytes:
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "silence.mp3"
            self._run(
                [
                    "-f", "lavfi",
                    "-i", f"anullsrc=r={SAMPLE_RATE}:cl=stereo",
                    "-t", f"{seconds:.3f}",
                    "-c:a", "libmp3lame",
                    "-b:a", BITRATE,
                    str(out),
                ],
                f"Generate {seconds:.2f}s silence",
            )
            return out.read_bytes()

    def _concat_sync(self, parts: list[bytes]) -> bytes:
        with tempfile.TemporaryDirectory() as tmp:
            tmp_dir = Path(tmp)
            concat_file = tmp_dir / "concat.txt"
            with concat_file.open("w", encoding="utf-8") as f:
                for i, data in enumerate(parts):
                    part = tmp_dir / f"part_{i:04d}.mp3"
                    part.write_bytes(data)
                    f.write(_ffconcat_line(part))
            out = tmp_dir / "joined.mp3"
            self._run(
                ["-f", "concat", "-safe", "0", "-i", str(concat_file), "-c", "copy", str(out)],
                f"Concatenate {len(parts)} parts",
            )
            return out.read_bytes()

    async def silence(self, seconds: float) -> bytes:
        return await asyncio.to_thread(self._silence_sync, seconds)

    async def concat(self, parts: list[bytes]) -> bytes:
        return await asyncio.to_thread(self._concat_sync, parts)


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

class AudioAssembler:
    def __init__(self, codec: AudioCodec) -> None:
        self._codec = codec

    async def assemble(self, segments: list[bytes], pause_seconds: float = 0.0) -> bytes:
        """Join segments in order with pause_seconds of silence between them.

        Raises AssemblyError on empty input or any codec failure.
        """
        if not segments:
            raise AssemblyError("No audio segments to assemble")
        if len(segments) == 1:
            return segments[0]

        if pause_seconds > 0:
            silence = await self._codec.silence(pause_seconds)
            parts: list[bytes] = []
            for i, segment in enumerate(segments):
                if i:
                    parts.append(silence)
                parts.append(segment)
        else:
            parts = list(segments)
        return await self._codec.concat(parts)

    async def assemble_safe(self, segments: list[bytes], pause_seconds: float = 0.0) -> bytes:
        """Like assemble(), but falls back to plain byte concatenation
        (no silence) when the codec fails in any way. Empty input is still an error.
        """
        if not segments:
            raise AssemblyError("No audio segments to assemble")
        try:
            return await self.assemble(segments, pause_seconds)
        except Exception as e:
            logger.warning("Audio assembly failed, concatenating raw segments: %s", e)
            return b"".join(segments)


# ---------------------------------------------------------------------------
# Size / duration estimates
# ---------------------------------------------------------------------------

def estimate_duration(size_bytes: int, bitrate_kbps: int = 128) -> float:
    """Seconds of audio in an MP3 of size_bytes at a constant bitrate."""
    return size_bytes * 8 / (bitrate_kbps * 1000)


def estimate_file_size(duration_seconds: float, bitrate_kbps: int = 128) -> int:
    """Bytes of a constant-bitrate MP3 lasting duration_seconds."""
    return round(duration_seconds * bitrate_kbps * 1000 / 8)
