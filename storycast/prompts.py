"""Handlebars prompt rendering for every generation stage.

Each stage has a system and a user template. prompt_for() renders both
into a PromptSpec, which is what the content provider receives:

    prompt = prompt_for("narrative_outline", {"topic": "...", "era": "..."})

Templates use triple-stash ({{{x}}}) throughout: prompts are plain text
and must not be HTML-escaped.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pybars
from pydantic import BaseModel

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


class PromptSpec(BaseModel):
    system: str
    user: str


# ── Custom Handlebars helpers ────────────────────────────


def _helper_inc(this, value):
    """{{inc @index}}: 1-based numbering inside #each blocks."""
    return str(int(value) + 1)


_HELPERS: dict[str, Callable] = {
    "inc": _helper_inc,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def format_path_history(history: list[str]) -> str:
    """Render a listener's previous choices for a node prompt."""
    if not history:
        return "This is the start of the adventure."
    lines = [f"{i}. {choice}" for i, choice in enumerate(history, 1)]
    return "Previous choices made by the listener:\n" + "\n".join(lines)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_HISTORIAN = (
    "You are a master historical storyteller and researcher writing for audio. "
    "You combine rigorous accuracy with vivid, cinematic narration. "
    "Respond with JSON only, matching the requested schema exactly."
)

NARRATIVE_OUTLINE = (
    _HISTORIAN,
    """Create a five-act outline for a narrated history episode.

Topic: {{{topic}}}
{{#if era}}Era: {{{era}}}
{{/if}}Target duration: {{minutes}} minutes (about {{target_words}} words)
{{#if additional_context}}Additional context: {{{additional_context}}}
{{/if}}
Structure the story in exactly five sections, in this order:
  hook, context, conflict, breakthrough, legacy
Each section has 2 to 5 beats. Attach citations to beats where a claim
depends on a specific source. Give 2 to 5 key themes.""",
)

NARRATIVE_SCRIPT = (
    _HISTORIAN,
    """Write the full narration script for this outline.

Outline:
{{{outline_json}}}

Target length: {{target_words}} words ({{minutes}} minutes at 150 words per minute).
Write in flowing spoken prose for a single narrator: no headings, stage
directions or sound cues in the transcript. Keep the five sections and their
acts. The transcript field holds the complete speakable text: introduction,
every paragraph in order, then the conclusion. Collect every citation used
into all_citations.""",
)

INTERVIEW_OUTLINE = (
    _HISTORIAN,
    """Plan an interview with a historical figure, as if they were alive today.

Guest: {{{guest_name}}}
Topic: {{{topic}}}
{{#if era}}Era: {{{era}}}
{{/if}}{{#if angle}}Angle: {{{angle}}}
{{/if}}{{#if additional_context}}Additional context: {{{additional_context}}}
{{/if}}
Write a short, accurate guest profile and 8 to 12 questions that move from
background to legacy. Each question carries research notes the guest's answer
must stay faithful to.""",
)

INTERVIEW_SCRIPT = (
    _HISTORIAN,
    """Write the interview script from this plan.

Plan:
{{{outline_json}}}

Target length: {{target_words}} words ({{minutes}} minutes).
The HOST opens with the intro and closes with the outro. Between them,
alternate HOST and GUEST lines. The guest speaks in the first person, in
period-appropriate but understandable language, and never claims knowledge
of events after their lifetime.""",
)

DEBATE_OUTLINE = (
    _HISTORIAN,
    """Prepare a structured historical debate.

Question: {{{question}}}
Topic: {{{topic}}}
{{#if era}}Era: {{{era}}}
{{/if}}{{#if additional_context}}Additional context: {{{additional_context}}}
{{/if}}
Define two opposing positions. For each, give an opening statement, exactly
three key points backed by 1 to 3 pieces of dated evidence, exactly two
rebuttals and a closing statement. Write a neutral moderator introduction and
conclusion.""",
)

DEBATE_SCRIPT = (
    _HISTORIAN,
    """Write the debate script from this preparation.

Preparation:
{{{outline_json}}}

Target length: {{target_words}} words ({{minutes}} minutes).
The MODERATOR opens with the intro and closes with the outro. Segments
alternate POSITION_1 and POSITION_2, with short MODERATOR transitions:
openings, key points, rebuttals, closings.""",
)

ADVENTURE_OUTLINE = (
    "You are a designer of interactive audio adventures set in real history. "
    "Respond with JSON only, matching the requested schema exactly.",
    """Design a choose-your-path audio adventure.

Concept: {{{concept}}}
Historical context: {{{historical_context}}}

Rules for the node graph:
  - 8 to 12 nodes in total
  - exactly 1 START node
  - 4 to 6 DECISION nodes, each with 2 or 3 choices
  - 2 to 3 STORY nodes, each with exactly 1 choice to continue
  - 3 to 4 ENDING nodes, each with an ending_type and no choices
  - every path from START to an ending visits 4 to 5 nodes
  - every next_node_id names a node in the graph, and no path loops back
The listener plays the protagonist. Keep every narrative historically grounded.""",
)

NODE_SCRIPT = (
    "You are the narrator of an interactive audio adventure. You speak to the "
    "listener in the second person. Respond with JSON only, matching the "
    "requested schema exactly.",
    """Adventure: {{{title}}}
Setting: {{{setting.era}}}, {{{setting.location}}}. {{{setting.context}}}
Premise: {{{storyline.premise}}}
The listener is: {{{storyline.protagonist}}}

{{{path_history}}}

Current node ({{node.node_type}}): {{{node.title}}}
{{{node.narrative}}}
{{#if choices}}
Choices to present:
{{#each choices}}{{inc @index}}. {{{text}}}: {{{description}}}
{{/each}}{{/if}}{{#if ending}}
This is an ending ({{{node.ending_type}}}). Close the story and give no choices.
{{/if}}
Write the node script for node_id "{{{node.id}}}": a short intro that picks up
from the listener's previous choices, the narrative, {{#if choices}}a decision
prompt, the choices echoed back, {{/if}}and an outro. Aim for 150 to 250 words.""",
)

TEMPLATES: dict[str, tuple[str, str]] = {
    "narrative_outline": NARRATIVE_OUTLINE,
    "narrative_script": NARRATIVE_SCRIPT,
    "interview_outline": INTERVIEW_OUTLINE,
    "interview_script": INTERVIEW_SCRIPT,
    "debate_outline": DEBATE_OUTLINE,
    "debate_script": DEBATE_SCRIPT,
    "adventure_outline": ADVENTURE_OUTLINE,
    "node_script": NODE_SCRIPT,
}


def prompt_for(name: str, context: dict[str, Any]) -> PromptSpec:
    """Render the system and user templates registered under name."""
    try:
        system, user = TEMPLATES[name]
    except KeyError:
        raise PromptError(f"Unknown prompt: {name}") from None
    return PromptSpec(
        system=render_prompt(system, context),
        user=render_prompt(user, context),
    )
