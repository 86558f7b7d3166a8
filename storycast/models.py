"""Core domain records.

Every component and the storage layer operate on these types. Pydantic is
used for validation and serialisation at every data boundary.

    Episode         one publishable unit of generated audio and its metadata
    NarrativeGraph  an adventure: START/DECISION/STORY/ENDING nodes + choices
    Journey         one listener's traversal state over a NarrativeGraph
    AudioSegment    one (speaker, voice, text, speed) unit to synthesize
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from storycast.errors import InvalidTransition
from storycast.voices import MAX_SPEED, MIN_SPEED

EpisodeFormat = Literal["narrative", "interview", "debate", "adventure"]
GenerationStage = Literal["outline", "script", "audio", "upload", "publish"]
NodeType = Literal["START", "DECISION", "STORY", "ENDING"]
EndingType = Literal["victory", "defeat", "neutral", "bittersweet"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Episodes
# ---------------------------------------------------------------------------

class EpisodeStatus(str, Enum):
    GENERATING_OUTLINE = "GENERATING_OUTLINE"
    GENERATING_SCRIPT = "GENERATING_SCRIPT"
    GENERATING_AUDIO = "GENERATING_AUDIO"
    PROCESSING = "PROCESSING"
    READY = "READY"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


_S = EpisodeStatus
TRANSITIONS: dict[EpisodeStatus, frozenset[EpisodeStatus]] = {
    _S.GENERATING_OUTLINE: frozenset({_S.GENERATING_SCRIPT, _S.FAILED}),
    _S.GENERATING_SCRIPT: frozenset({_S.GENERATING_AUDIO, _S.FAILED}),
    _S.GENERATING_AUDIO: frozenset({_S.PROCESSING, _S.FAILED}),
    _S.PROCESSING: frozenset({_S.READY, _S.FAILED}),
    _S.READY: frozenset({_S.PUBLISHED}),
    _S.PUBLISHED: frozenset(),
    _S.FAILED: frozenset(),
}

# Status persisted while each stage runs.
STAGE_STATUS: dict[str, EpisodeStatus] = {
    "outline": _S.GENERATING_OUTLINE,
    "script": _S.GENERATING_SCRIPT,
    "audio": _S.GENERATING_AUDIO,
    "upload": _S.PROCESSING,
    "publish": _S.READY,
}


class AudioReference(BaseModel):
    url: str
    bytes: int = Field(ge=0)
    mime_type: str = "audio/mpeg"
    duration: float = Field(ge=0)  # seconds


class Episode(BaseModel):
    id: str = Field(default_factory=_new_id)
    guid: str = Field(default_factory=_new_id)
    format: EpisodeFormat = "narrative"
    status: EpisodeStatus = EpisodeStatus.GENERATING_OUTLINE
    topic: str
    era: str | None = None
    title: str | None = None
    subtitle: str | None = None
    outline: dict[str, Any] | None = None
    script: dict[str, Any] | None = None
    transcript: str | None = None
    sources: list[dict[str, Any]] = Field(default_factory=list)
    word_count: int | None = None
    audio: AudioReference | None = None
    error_msg: str | None = None
    created_at: datetime = Field(default_factory=_now)
    published_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (EpisodeStatus.READY, EpisodeStatus.PUBLISHED, EpisodeStatus.FAILED)

    def transition(self, status: EpisodeStatus) -> None:
        """Move to status, or raise InvalidTransition. Same-status is a no-op."""
        if status == self.status:
            return
        if status not in TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Episode {self.id}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status


class AudioSegment(BaseModel):
    """One unit of speech to synthesize. Never persisted."""

    speaker: str
    voice: str
    text: str
    speed: float = Field(default=1.0, ge=MIN_SPEED, le=MAX_SPEED)


# ---------------------------------------------------------------------------
# Adventures
# ---------------------------------------------------------------------------

class Choice(BaseModel):
    id: str = ""  # assigned "<node id>:<index>" by Node when empty
    text: str
    description: str = ""
    consequences: str = ""
    target_node_id: str


class Node(BaseModel):
    id: str
    title: str
    node_type: NodeType
    narrative: str = ""
    choices: list[Choice] = Field(default_factory=list)
    ending_type: EndingType | None = None
    script: dict[str, Any] | None = None  # NodeScript, filled in lazily
    audio: AudioReference | None = None

    @model_validator(mode="after")
    def _assign_choice_ids(self) -> Node:
        for i, choice in enumerate(self.choices):
            if not choice.id:
                choice.id = f"{self.id}:{i}"
        return self

    def choice(self, choice_id: str) -> Choice | None:
        for c in self.choices:
            if c.id == choice_id:
                return c
        return None


class Setting(BaseModel):
    era: str = ""
    location: str = ""
    context: str = ""
    key_figures: list[str] = Field(default_factory=list)


class Storyline(BaseModel):
    premise: str = ""
    protagonist: str = ""
    stakes: str = ""


class NarrativeGraph(BaseModel):
    """A branching adventure. Structure is immutable once validated."""

    id: str = Field(default_factory=_new_id)
    title: str
    description: str = ""
    setting: Setting = Field(default_factory=Setting)
    storyline: Storyline = Field(default_factory=Storyline)
    nodes: list[Node]
    created_at: datetime = Field(default_factory=_now)

    def node(self, node_id: str) -> Node | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def start_node(self) -> Node | None:
        starts = [n for n in self.nodes if n.node_type == "START"]
        return starts[0] if len(starts) == 1 else None


class PathEntry(BaseModel):
    node_id: str  # node the choice was made on
    choice_id: str
    choice_text: str
    timestamp: datetime = Field(default_factory=_now)


class Journey(BaseModel):
    id: str = Field(default_factory=_new_id)
    graph_id: str
    listener_id: str
    current_node_id: str
    path: list[PathEntry] = Field(default_factory=list)
    is_completed: bool = False
    completed_at: datetime | None = None
    version: int = 0  # bumped on every choice; optimistic concurrency check
    started_at: datetime = Field(default_factory=_now)
