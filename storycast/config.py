"""Runtime settings, read from the environment (and an optional .env file).

    STORYCAST_CONTENT_URL       base URL of the OpenAI-compatible chat backend
    STORYCAST_CONTENT_API_KEY   bearer token for the chat backend
    STORYCAST_CONTENT_MODEL     model name for structured generation
    STORYCAST_SPEECH_URL        base URL of the OpenAI-compatible speech backend
    STORYCAST_SPEECH_API_KEY    bearer token for the speech backend
    STORYCAST_SPEECH_MODEL      speech model name
    STORYCAST_DATA_DIR          JSON record store directory
    STORYCAST_MEDIA_DIR         directory uploaded audio is written to
    STORYCAST_MEDIA_BASE_URL    public URL prefix for uploaded audio
    STORYCAST_FFMPEG            ffmpeg binary
    STORYCAST_TIMEOUT           provider request timeout, seconds
    STORYCAST_LOG_LEVEL         logging level for the dev launcher
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ROOT = Path(__file__).parent.parent

_ENV_KEYS: dict[str, str] = {
    "content_url": "STORYCAST_CONTENT_URL",
    "content_api_key": "STORYCAST_CONTENT_API_KEY",
    "content_model": "STORYCAST_CONTENT_MODEL",
    "speech_url": "STORYCAST_SPEECH_URL",
    "speech_api_key": "STORYCAST_SPEECH_API_KEY",
    "speech_model": "STORYCAST_SPEECH_MODEL",
    "data_dir": "STORYCAST_DATA_DIR",
    "media_dir": "STORYCAST_MEDIA_DIR",
    "media_base_url": "STORYCAST_MEDIA_BASE_URL",
    "ffmpeg": "STORYCAST_FFMPEG",
    "timeout": "STORYCAST_TIMEOUT",
    "log_level": "STORYCAST_LOG_LEVEL",
}


class Settings(BaseModel):
    content_url: str = "https://api.openai.com"
    content_api_key: str = ""
    content_model: str = "gpt-4o"
    speech_url: str = "https://api.openai.com"
    speech_api_key: str = ""
    speech_model: str = "tts-1-hd"
    data_dir: Path = ROOT / "data"
    media_dir: Path = ROOT / "data" / "media"
    media_base_url: str = "http://localhost:13013/media"
    ffmpeg: str = "ffmpeg"
    timeout: float = Field(default=120.0, gt=0)
    log_level: str = "INFO"


def load_settings(env_file: Path | None = None) -> Settings:
    """Build Settings from the environment.

    Values in env_file (default: <repo>/.env) are loaded first but never
    override variables already set in the process environment. The speech
    backend falls back to the content backend's API key when unset.
    """
    load_dotenv(env_file or ROOT / ".env")

    values: dict[str, str] = {}
    for field, key in _ENV_KEYS.items():
        raw = os.getenv(key, "")
        if raw:
            values[field] = raw

    if "speech_api_key" not in values and "content_api_key" in values:
        values["speech_api_key"] = values["content_api_key"]
    if "media_dir" not in values and "data_dir" in values:
        values["media_dir"] = str(Path(values["data_dir"]) / "media")

    return Settings.model_validate(values)
