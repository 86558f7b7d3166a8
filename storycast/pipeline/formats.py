"""Linear episode formats: narrative, interview, debate.

A format workflow knows how to turn a request into an outline, an outline
into a script, and a script into the persisted artifacts and the ordered
speech segments:

    workflow = workflow_for("interview")
    outline  = await workflow.outline(request, content=content)
    script   = await workflow.script(outline, request, content=content)
    workflow.artifacts(script, outline, request)   → ScriptArtifacts
    workflow.segments(script, request)             → list[AudioSegment]
    workflow.pause_seconds                         → silence between segments

Segments never exceed the speech backend's per-call input limit; long
lines are split into consecutive segments for the same speaker.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from storycast.audio import DEBATE_PAUSE, INTERVIEW_PAUSE, NARRATIVE_PAUSE
from storycast.llm import ContentProvider, generate
from storycast.models import AudioSegment, EpisodeFormat
from storycast.prompts import prompt_for
from storycast.retry import COMPLETION_POLICY, RetryPolicy
from storycast.schemas import (
    DebateOutline,
    DebateScript,
    InterviewOutline,
    InterviewScript,
    Outline,
    Script,
)
from storycast.speech import MAX_INPUT_CHARS, split_segment
from storycast.voices import guest_voice, is_valid_voice, preset


WORDS_PER_MINUTE = 150

O = TypeVar("O", bound=BaseModel)
S = TypeVar("S", bound=BaseModel)


def target_words(duration_seconds: float) -> int:
    """Script length for a target duration at WORDS_PER_MINUTE."""
    return round(duration_seconds * WORDS_PER_MINUTE / 60)


def speaking_duration(word_count: int) -> float:
    """Seconds needed to speak word_count words at WORDS_PER_MINUTE."""
    return round(word_count / WORDS_PER_MINUTE * 60)


def count_words(text: str) -> int:
    return len(text.split())


# ---------------------------------------------------------------------------
# Request / artifacts
# ---------------------------------------------------------------------------

class EpisodeRequest(BaseModel):
    """What to generate. Validated before any provider call is made."""

    format: EpisodeFormat = "narrative"
    topic: str = Field(min_length=1)
    era: str | None = None
    target_duration: int = Field(default=1200, ge=60, le=3600)  # seconds
    additional_context: str | None = None
    voices: dict[str, str] = Field(default_factory=dict)  # role → voice override
    guest_name: str | None = None
    question: str | None = None
    angle: str | None = None

    @field_validator("voices")
    @classmethod
    def _known_voices(cls, v: dict[str, str]) -> dict[str, str]:
        for role, voice in v.items():
            if not is_valid_voice(voice):
                raise ValueError(f"Unknown voice {voice!r} for role {role!r}")
        return v

    @model_validator(mode="after")
    def _format_fields(self) -> EpisodeRequest:
        if self.format == "adventure":
            raise ValueError("Adventures are not a linear format; use storycast.adventure")
        if self.format == "interview" and not self.guest_name:
            raise ValueError("guest_name is required for interviews")
        if self.format == "debate" and not self.question:
            raise ValueError("question is required for debates")
        return self

    def voice_for(self, role: str) -> tuple[str, float]:
        """(voice, speed) for a role: request override, then format preset."""
        voice, speed = preset(self.format, role)
        if role == "guest":
            voice = guest_voice(self.guest_name)
        return self.voices.get(role, voice), speed


class ScriptArtifacts(BaseModel):
    title: str
    subtitle: str | None = None
    transcript: str
    word_count: int
    duration: float  # estimated seconds
    sources: list[dict[str, Any]] = Field(default_factory=list)


def _segments(role_lines: list[tuple[str, str, float, str]]) -> list[AudioSegment]:
    """(speaker, voice, speed, text) lines → chunked AudioSegments."""
    segments: list[AudioSegment] = []
    for speaker, voice, speed, text in role_lines:
        if not text.strip():
            continue
        segment = AudioSegment(speaker=speaker, voice=voice, text=text, speed=speed)
        segments.extend(split_segment(segment, MAX_INPUT_CHARS))
    return segments


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------

class Workflow(Generic[O, S]):
    """Shared outline/script calls; formats supply schemas and mapping."""

    name: str
    outline_schema: type[O]
    script_schema: type[S]
    pause_seconds: float

    def __init__(self, policy: RetryPolicy = COMPLETION_POLICY) -> None:
        self.policy = policy

    def prompt_context(self, request: EpisodeRequest) -> dict[str, Any]:
        return {
            "topic": request.topic,
            "era": request.era,
            "additional_context": request.additional_context,
            "guest_name": request.guest_name,
            "question": request.question,
            "angle": request.angle,
            "minutes": round(request.target_duration / 60),
            "target_words": target_words(request.target_duration),
        }

    async def outline(self, request: EpisodeRequest, *, content: ContentProvider) -> O:
        stage = f"{self.name}_outline"
        prompt = prompt_for(stage, self.prompt_context(request))
        return await generate(content, stage, prompt, self.outline_schema, self.policy)

    async def script(self, outline: O, request: EpisodeRequest, *, content: ContentProvider) -> S:
        stage = f"{self.name}_script"
        context = self.prompt_context(request)
        context["outline_json"] = outline.model_dump_json(indent=2, exclude_none=True)
        prompt = prompt_for(stage, context)
        return await generate(content, stage, prompt, self.script_schema, self.policy)

    def headline(self, outline: O, request: EpisodeRequest) -> tuple[str, str | None]:
        raise NotImplementedError

    def artifacts(self, script: S, outline: O, request: EpisodeRequest) -> ScriptArtifacts:
        raise NotImplementedError

    def segments(self, script: S, request: EpisodeRequest) -> list[AudioSegment]:
        raise NotImplementedError


class NarrativeWorkflow(Workflow[Outline, Script]):
    name = "narrative"
    outline_schema = Outline
    script_schema = Script
    pause_seconds = NARRATIVE_PAUSE

    def headline(self, outline: Outline, request: EpisodeRequest) -> tuple[str, str | None]:
        return outline.title, outline.subtitle

    def artifacts(self, script: Script, outline: Outline, request: EpisodeRequest) -> ScriptArtifacts:
        words = count_words(script.transcript)
        return ScriptArtifacts(
            title=script.title,
            subtitle=script.subtitle,
            transcript=script.transcript,
            word_count=words,
            duration=speaking_duration(words),
            sources=[c.model_dump(exclude_none=True) for c in script.all_citations],
        )

    def segments(self, script: Script, request: EpisodeRequest) -> list[AudioSegment]:
        voice, speed = request.voice_for("narrator")
        return _segments([("NARRATOR", voice, speed, script.transcript)])


class InterviewWorkflow(Workflow[InterviewOutline, InterviewScript]):
    name = "interview"
    outline_schema = InterviewOutline
    script_schema = InterviewScript
    pause_seconds = INTERVIEW_PAUSE

    def headline(self, outline: InterviewOutline, request: EpisodeRequest) -> tuple[str, str | None]:
        return f"Interview with {outline.guest.name}: {outline.topic}", outline.angle

    def _lines(self, script: InterviewScript) -> list[tuple[str, str]]:
        return [
            ("HOST", script.intro),
            *((line.speaker, line.text) for line in script.segments),
            ("HOST", script.outro),
        ]

    def artifacts(
        self, script: InterviewScript, outline: InterviewOutline, request: EpisodeRequest,
    ) -> ScriptArtifacts:
        lines = self._lines(script)
        words = sum(count_words(text) for _, text in lines)
        title, subtitle = self.headline(outline, request)
        return ScriptArtifacts(
            title=title,
            subtitle=subtitle,
            transcript="\n\n".join(f"{speaker}: {text}" for speaker, text in lines),
            word_count=words,
            duration=speaking_duration(words),
            sources=[c.model_dump(exclude_none=True) for c in outline.sources],
        )

    def segments(self, script: InterviewScript, request: EpisodeRequest) -> list[AudioSegment]:
        roles = {"HOST": request.voice_for("host"), "GUEST": request.voice_for("guest")}
        return _segments([
            (speaker, *roles[speaker], text) for speaker, text in self._lines(script)
        ])


class DebateWorkflow(Workflow[DebateOutline, DebateScript]):
    name = "debate"
    outline_schema = DebateOutline
    script_schema = DebateScript
    pause_seconds = DEBATE_PAUSE

    _ROLES = {"MODERATOR": "moderator", "POSITION_1": "position1", "POSITION_2": "position2"}

    def headline(self, outline: DebateOutline, request: EpisodeRequest) -> tuple[str, str | None]:
        return f"Debate: {outline.question}", f"{outline.position1} vs {outline.position2}"

    def _lines(self, script: DebateScript) -> list[tuple[str, str]]:
        return [
            ("MODERATOR", script.intro),
            *((line.speaker, line.text) for line in script.segments),
            ("MODERATOR", script.outro),
        ]

    def artifacts(
        self, script: DebateScript, outline: DebateOutline, request: EpisodeRequest,
    ) -> ScriptArtifacts:
        lines = self._lines(script)
        words = sum(count_words(text) for _, text in lines)
        title, subtitle = self.headline(outline, request)
        sources: list[dict[str, Any]] = []
        seen: set[str] = set()
        for argument in (outline.argument1, outline.argument2):
            for point in argument.key_points:
                for evidence in point.evidence:
                    if evidence.source in seen:
                        continue
                    seen.add(evidence.source)
                    source: dict[str, Any] = {"title": evidence.source}
                    if evidence.year is not None:
                        source["year"] = evidence.year
                    sources.append(source)
        return ScriptArtifacts(
            title=title,
            subtitle=subtitle,
            transcript="\n\n".join(f"{speaker}: {text}" for speaker, text in lines),
            word_count=words,
            duration=speaking_duration(words),
            sources=sources,
        )

    def segments(self, script: DebateScript, request: EpisodeRequest) -> list[AudioSegment]:
        roles = {speaker: request.voice_for(role) for speaker, role in self._ROLES.items()}
        return _segments([
            (speaker, *roles[speaker], text) for speaker, text in self._lines(script)
        ])


WORKFLOWS: dict[str, type[Workflow]] = {
    "narrative": NarrativeWorkflow,
    "interview": InterviewWorkflow,
    "debate": DebateWorkflow,
}


def workflow_for(format: str, policy: RetryPolicy = COMPLETION_POLICY) -> Workflow:
    try:
        return WORKFLOWS[format](policy)
    except KeyError:
        raise ValueError(f"No linear workflow for format {format!r}") from None
