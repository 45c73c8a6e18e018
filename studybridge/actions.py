from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Callable, Mapping

from studybridge.errors import ClientRequestInvalid
from studybridge.generation import GenerationRequest

SYSTEM_PROMPT = "You are a helpful study assistant. You output strictly valid JSON."
UNKNOWN_TOPIC = "Unknown topic"
DEFAULT_SUBJECT = "General"
MAX_TOPIC_NAME = 500

MINDMAP_CENTER = (400.0, 300.0)
MINDMAP_RADIUS = 200.0
MINDMAP_ROOT_COLOR = "#f59e0b"
MINDMAP_COLORS = ("#3b82f6", "#10b981", "#8b5cf6", "#ef4444", "#06b6d4", "#f97316")


@dataclass(frozen=True)
class ActionContext:
    topic: str
    subject: str
    existing_topics: tuple[str, ...] = ()


@dataclass(frozen=True)
class Action:
    name: str
    prompt: Callable[[ActionContext], str]
    schema: object


def _subdivide_prompt(ctx: ActionContext) -> str:
    topic = ctx.topic
    if len(topic) > MAX_TOPIC_NAME:
        topic = topic[:MAX_TOPIC_NAME] + "..."
    return (
        f'Split the topic "{topic}" of the subject "{ctx.subject}" into smaller subtopics.\n'
        "Rules: produce between 3 and 10 subtopics and keep them short.\n"
        'Example: {"subtopics": [{"name": "Introduction", "difficulty": "easy"}]}'
    )


def _expand_prompt(ctx: ActionContext) -> str:
    existing = ", ".join(ctx.existing_topics)
    return (
        f'List new topics for the subject "{ctx.subject}".\n'
        f"Skip these existing topics: {existing}.\n"
        'At most 20 items, under the key "topics".\n'
        'Example: {"topics": [{"name": "...", "difficulty": "medium"}]}'
    )


def _study_content_prompt(ctx: ActionContext) -> str:
    return (
        f'Write study material for "{ctx.topic}" in Markdown, organized in 5 to 7 '
        "numbered H2 sections (## 1. Introduction, ## 2. Concepts, ...).\n"
        'Example: {"content": "## 1. Introduction\\n...", "key_concepts": [], '
        '"common_mistakes": [], "exam_tips": []}'
    )


def _summary_prompt(ctx: ActionContext) -> str:
    return f'Write a concise summary of "{ctx.topic}".\nExample: {{"summary": "## Summary...", "key_points": []}}'


def _flashcards_prompt(ctx: ActionContext) -> str:
    return (
        f'Write 5 flashcards for "{ctx.topic}".\n'
        'Example: {"flashcards": [{"front": "Question...", "back": "Answer..."}]}'
    )


def _essay_prompt(ctx: ActionContext) -> str:
    return (
        f'Write an essay proposal about "{ctx.topic}".\n'
        'Example: {"title": "...", "theme": "...", "description": "...", '
        '"motivating_texts": [], "instructions": "..."}'
    )


def _mindmap_prompt(ctx: ActionContext) -> str:
    return (
        f'Outline a mind map for "{ctx.topic}" under the key "nodes".\n'
        'Example: {"nodes": [{"text": "Root", "isRoot": true}, '
        '{"text": "Child", "isRoot": false, "children": []}]}'
    )


ACTIONS: dict[str, Action] = {
    action.name: action
    for action in (
        Action(
            "subdivide_topic",
            _subdivide_prompt,
            {"subtopics": [{"name": "string", "difficulty": "string"}]},
        ),
        Action(
            "expand_topics",
            _expand_prompt,
            {"topics": [{"name": "string", "difficulty": "string"}]},
        ),
        Action(
            "study_content",
            _study_content_prompt,
            {"content": "string", "key_concepts": [], "common_mistakes": [], "exam_tips": []},
        ),
        Action("summary", _summary_prompt, {"summary": "string", "key_points": []}),
        Action("flashcards", _flashcards_prompt, {"flashcards": [{"front": "string", "back": "string"}]}),
        Action(
            "essay",
            _essay_prompt,
            {"title": "string", "theme": "string", "instructions": "string"},
        ),
        Action("mindmap", _mindmap_prompt, {"nodes": [{"text": "string", "isRoot": True, "children": []}]}),
    )
}


def _name_of(value: object, default: str) -> str:
    if isinstance(value, Mapping):
        value = value.get("name")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def build_generation_request(
    body: object,
    temperature: float = 0.3,
    max_tokens: int = 2048,
) -> tuple[str, GenerationRequest]:
    """Turn an inbound ``{action, topic, subject, existingTopics}`` body into a request."""
    if not isinstance(body, Mapping):
        raise ClientRequestInvalid("Request body must be a JSON object")
    action_name = body.get("action")
    action = ACTIONS.get(action_name) if isinstance(action_name, str) else None
    if action is None:
        raise ClientRequestInvalid(f"Action '{action_name}' not supported", code="INVALID_ACTION")

    existing = body.get("existingTopics") or []
    if not isinstance(existing, list):
        raise ClientRequestInvalid("existingTopics must be a list")
    ctx = ActionContext(
        topic=_name_of(body.get("topic"), UNKNOWN_TOPIC),
        subject=_name_of(body.get("subject"), DEFAULT_SUBJECT),
        existing_topics=tuple(_name_of(t, "") for t in existing if _name_of(t, "")),
    )
    request = GenerationRequest(
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": action.prompt(ctx)},
        ],
        schema=action.schema,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return action.name, request


def layout_mindmap(result: object, rng: random.Random | None = None) -> object:
    """Place mind map nodes on a radial layout and add parent/child connections."""
    if not isinstance(result, dict) or not isinstance(result.get("nodes"), list):
        return result
    raw_nodes = [n for n in result["nodes"] if isinstance(n, dict)]
    if not raw_nodes:
        return result
    rng = rng or random.Random()
    root = next((n for n in raw_nodes if n.get("isRoot")), raw_nodes[0])
    children = [n for n in raw_nodes if n is not root]
    cx, cy = MINDMAP_CENTER

    nodes: list[dict[str, object]] = [
        {"id": "root", "text": root.get("text"), "x": cx, "y": cy, "color": MINDMAP_ROOT_COLOR, "isRoot": True}
    ]
    connections: list[dict[str, str]] = []
    for i, child in enumerate(children):
        angle = 2 * math.pi * i / len(children)
        x = cx + math.cos(angle) * MINDMAP_RADIUS
        y = cy + math.sin(angle) * MINDMAP_RADIUS
        color = MINDMAP_COLORS[i % len(MINDMAP_COLORS)]
        node_id = f"node-{i}"
        nodes.append({"id": node_id, "text": child.get("text"), "x": x, "y": y, "color": color})
        connections.append({"id": f"c-{i}", "from": "root", "to": node_id})

        grandchildren = child.get("children")
        if not isinstance(grandchildren, list):
            continue
        for j, sub in enumerate(grandchildren):
            sub_id = f"{node_id}-{j}"
            text = sub.get("text") if isinstance(sub, dict) else sub
            nodes.append(
                {
                    "id": sub_id,
                    "text": text,
                    "x": x + rng.uniform(-30, 30),
                    "y": y + rng.uniform(30, 90),
                    "color": color,
                }
            )
            connections.append({"id": f"c-{i}-{j}", "from": node_id, "to": sub_id})
    return {"nodes": nodes, "connections": connections}


POSTPROCESSORS: dict[str, Callable[[object], object]] = {
    "mindmap": layout_mindmap,
}


def postprocess(action: str, result: object) -> object:
    handler = POSTPROCESSORS.get(action)
    return handler(result) if handler else result
