"""Per-node content: path-aware scripts and narrated node audio.

Node content is generated lazily, the first time a listener reaches a node
(ensure_node_content), or eagerly for a whole adventure (produce_adventure).
Once a node has a script and audio they are reused for every listener.

Node audio is one narrator stream: intro, narrative, decision prompt and
outro, separated by NODE_PAUSE seconds of silence.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from storycast.adventure.builder import build_adventure
from storycast.adventure.journey import path_history
from storycast.audio import NODE_PAUSE, AudioAssembler
from storycast.errors import NotFound
from storycast.llm import ContentProvider, generate
from storycast.models import AudioReference, AudioSegment, Journey, NarrativeGraph, Node
from storycast.pipeline.formats import count_words, speaking_duration
from storycast.prompts import format_path_history, prompt_for
from storycast.retry import COMPLETION_POLICY, RetryPolicy
from storycast.schemas import NodeScript
from storycast.speech import SpeechProvider, split_segment, synthesize_segments
from storycast.storage import ObjectStore, Storage
from storycast.voices import preset

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_-]+")


def _prompt_context(node: Node, graph: NarrativeGraph, history: list[str]) -> dict[str, Any]:
    return {
        "title": graph.title,
        "setting": graph.setting.model_dump(),
        "storyline": graph.storyline.model_dump(),
        "path_history": format_path_history(history),
        "node": node.model_dump(include={"id", "title", "node_type", "narrative", "ending_type"}),
        "choices": [{"text": c.text, "description": c.description} for c in node.choices],
        "ending": node.node_type == "ENDING",
    }


def _spoken_parts(script: NodeScript) -> list[str]:
    parts = [script.intro, script.narrative, script.decision_prompt or "", script.outro]
    return [p for p in parts if p.strip()]


async def generate_node_script(
    node: Node,
    graph: NarrativeGraph,
    history: list[str],
    *,
    content: ContentProvider,
    policy: RetryPolicy = COMPLETION_POLICY,
) -> NodeScript:
    """Second-person script for node, aware of the listener's choices so far."""
    prompt = prompt_for("node_script", _prompt_context(node, graph, history))
    script = await generate(content, "node_script", prompt, NodeScript, policy)
    if script.node_id != node.id:
        logger.warning("Node script for %s came back labelled %s", node.id, script.node_id)
    return script.model_copy(update={
        "node_id": node.id,
        "total_words": sum(count_words(p) for p in _spoken_parts(script)),
    })


async def render_node_audio(
    script: NodeScript,
    *,
    speech: SpeechProvider,
    assembler: AudioAssembler,
    voice: str | None = None,
    speed: float | None = None,
) -> bytes:
    """Narrate a node script as one MP3."""
    default_voice, default_speed = preset("adventure", "narrator")
    voice = voice or default_voice
    speed = speed if speed is not None else default_speed

    buffers: list[bytes] = []
    for part in _spoken_parts(script):
        segment = AudioSegment(speaker="NARRATOR", voice=voice, text=part, speed=speed)
        chunks = await synthesize_segments(speech, split_segment(segment))
        buffers.append(await assembler.assemble_safe(chunks, 0.0))
    return await assembler.assemble_safe(buffers, NODE_PAUSE)


async def ensure_node_content(
    storage: Storage,
    graph_id: str,
    node_id: str,
    *,
    content: ContentProvider,
    speech: SpeechProvider,
    assembler: AudioAssembler,
    object_store: ObjectStore,
    journey: Journey | None = None,
    voice: str | None = None,
) -> Node:
    """Return node with script and audio, generating whatever is missing.

    The script is written for journey's path so far (or the adventure start
    when journey is None) and persisted before audio is rendered, so a
    failed synthesis does not cost a second content call.
    """
    graph = storage.require_graph(graph_id)
    node = graph.node(node_id)
    if node is None:
        raise NotFound(f"Node {node_id} not found in adventure {graph_id}")
    if node.script is not None and node.audio is not None:
        return node

    if node.script is None:
        history = path_history(journey) if journey is not None else []
        script = await generate_node_script(node, graph, history, content=content)
        node.script = script.model_dump(mode="json")
        storage.save_node_content(graph_id, node)
    else:
        script = NodeScript.model_validate(node.script)

    audio = await render_node_audio(script, speech=speech, assembler=assembler, voice=voice)
    filename = f"{graph.id}-{_UNSAFE_FILENAME.sub('_', node.id)}.mp3"
    upload = await object_store.upload(audio, filename=filename, content_type="audio/mpeg")
    node.audio = AudioReference(
        url=upload.url,
        bytes=upload.bytes,
        mime_type=upload.content_type,
        duration=speaking_duration(script.total_words),
    )
    storage.save_node_content(graph_id, node)
    logger.info("Generated content for node %s of adventure %s", node_id, graph_id)
    return node


async def produce_adventure(
    concept: str,
    historical_context: str,
    *,
    storage: Storage,
    content: ContentProvider,
    speech: SpeechProvider,
    assembler: AudioAssembler,
    object_store: ObjectStore,
    voice: str | None = None,
) -> NarrativeGraph:
    """Build, persist and fully narrate an adventure up front."""
    graph = await build_adventure(concept, historical_context, storage=storage, content=content)
    for i, node in enumerate(graph.nodes, 1):
        logger.info("Adventure %s: node %d/%d (%s)", graph.id, i, len(graph.nodes), node.id)
        await ensure_node_content(
            storage, graph.id, node.id,
            content=content, speech=speech, assembler=assembler,
            object_store=object_store, voice=voice,
        )
    return storage.require_graph(graph.id)
