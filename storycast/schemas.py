"""Result schemas for content-generation calls.

Each provider call names one of these models; the provider sends its JSON
schema along with the request and validates the reply against it, so code
past the provider boundary never sees an unchecked shape.

Structural limits (five acts, 2–5 beats, 8–12 adventure nodes) are enforced
here. Graph invariants (one START, reachable nodes, ...) are not checked here:
storycast.adventure.graph reports all of those together.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Act = Literal["hook", "context", "conflict", "breakthrough", "legacy"]
ACTS: tuple[Act, ...] = ("hook", "context", "conflict", "breakthrough", "legacy")


class Citation(BaseModel):
    title: str
    author: str | None = None
    url: str | None = None
    year: int | None = None
    type: Literal["book", "article", "website", "paper", "archive"] = "book"


# ---------------------------------------------------------------------------
# Narrative episodes
# ---------------------------------------------------------------------------

class OutlineBeat(BaseModel):
    beat: str
    context: str
    citations: list[Citation] | None = None


class OutlineSection(BaseModel):
    title: str
    act: Act
    beats: list[OutlineBeat] = Field(min_length=2, max_length=5)
    estimated_duration: float


class Outline(BaseModel):
    """Five-act plan: hook, context, conflict, breakthrough, legacy."""

    title: str
    subtitle: str | None = None
    topic: str
    era: str
    hook: str
    sections: list[OutlineSection] = Field(min_length=5, max_length=5)
    total_estimated_duration: float
    key_themes: list[str] = Field(min_length=2, max_length=5)
    target_audience: str = ""


class ScriptParagraph(BaseModel):
    text: str
    citations: list[Citation] | None = None
    footnote: str | None = None


class ScriptSection(BaseModel):
    title: str
    act: Act
    paragraphs: list[ScriptParagraph] = Field(min_length=1)
    estimated_duration: float


class Script(BaseModel):
    title: str
    subtitle: str | None = None
    introduction: str
    sections: list[ScriptSection] = Field(min_length=5, max_length=5)
    conclusion: str
    transcript: str  # clean speakable text, no stage directions
    word_count: int = Field(ge=0)
    estimated_duration: float
    all_citations: list[Citation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Interviews
# ---------------------------------------------------------------------------

class InterviewGuest(BaseModel):
    name: str
    role: str
    era: str
    biography: str
    major_accomplishments: list[str] = Field(default_factory=list)
    historical_context: str


class InterviewQuestion(BaseModel):
    question: str
    category: Literal[
        "background", "achievement", "controversy", "personal", "legacy", "hypothetical",
    ]
    research_notes: str


class InterviewOutline(BaseModel):
    guest: InterviewGuest
    topic: str
    angle: str
    questions: list[InterviewQuestion] = Field(min_length=8, max_length=12)
    sources: list[Citation] = Field(default_factory=list)


class InterviewLine(BaseModel):
    speaker: Literal["HOST", "GUEST"]
    text: str
    emotion: Literal["neutral", "enthusiastic", "thoughtful", "somber", "excited"] | None = None


class InterviewScript(BaseModel):
    intro: str  # spoken by the host
    segments: list[InterviewLine] = Field(min_length=1)
    outro: str  # spoken by the host
    total_words: int = Field(ge=0)
    estimated_duration: float


# ---------------------------------------------------------------------------
# Debates
# ---------------------------------------------------------------------------

class DebateEvidence(BaseModel):
    fact: str
    source: str
    year: int | None = None


class DebateKeyPoint(BaseModel):
    claim: str
    evidence: list[DebateEvidence] = Field(min_length=1, max_length=3)
    reasoning: str


class DebateRebuttal(BaseModel):
    anticipated_counter_argument: str
    response: str
    evidence: str


class DebateArgument(BaseModel):
    position: str
    opening_statement: str
    key_points: list[DebateKeyPoint] = Field(min_length=3, max_length=3)
    rebuttals: list[DebateRebuttal] = Field(min_length=2, max_length=2)
    closing_statement: str


class DebateOutline(BaseModel):
    topic: str
    question: str
    historical_context: str
    position1: str
    position2: str
    argument1: DebateArgument
    argument2: DebateArgument
    moderator_intro: str
    moderator_outro: str


class DebateLine(BaseModel):
    speaker: Literal["MODERATOR", "POSITION_1", "POSITION_2"]
    text: str


class DebateScript(BaseModel):
    title: str
    intro: str  # spoken by the moderator
    segments: list[DebateLine] = Field(min_length=1)
    outro: str  # spoken by the moderator
    total_words: int = Field(ge=0)
    estimated_duration: float


# ---------------------------------------------------------------------------
# Adventures
# ---------------------------------------------------------------------------

class OutlineChoice(BaseModel):
    text: str
    description: str
    consequences: str
    next_node_id: str


class OutlineNode(BaseModel):
    id: str
    title: str
    node_type: Literal["START", "DECISION", "STORY", "ENDING"]
    narrative: str
    choices: list[OutlineChoice] | None = None
    ending_type: Literal["victory", "defeat", "neutral", "bittersweet"] | None = None


class HistoricalSetting(BaseModel):
    era: str
    location: str
    context: str
    key_figures: list[str] = Field(default_factory=list)


class Storyline(BaseModel):
    premise: str
    protagonist: str  # who the listener plays as
    stakes: str


class AdventureOutline(BaseModel):
    title: str
    description: str
    historical_setting: HistoricalSetting
    storyline: Storyline
    nodes: list[OutlineNode] = Field(min_length=8, max_length=12)


class ChoiceEcho(BaseModel):
    text: str
    description: str


class NodeScript(BaseModel):
    """Full second-person script for one adventure node."""

    node_id: str
    intro: str
    narrative: str
    decision_prompt: str | None = None
    choices: list[ChoiceEcho] | None = None
    outro: str
    total_words: int = Field(ge=0)
