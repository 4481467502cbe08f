"""
Guidance rendering.

Parent mode asks the model for JSON; child mode for light markdown. Either way
the client receives a flat list of blocks. A parent response that is not valid
JSON, or does not match the schema, is shown as markdown instead of failing.
"""

import json
import logging
import re

from pydantic import ValidationError

from parentmath.homework.schemas import Block, ParentGuidance, RenderedGuidance, Span
from parentmath.results import Fallback, Ok

logger = logging.getLogger(__name__)

_HEADING = re.compile(r"^(#{1,3})\s")
_LIST_ITEM = re.compile(r"^[-*]\s")
_BOLD = re.compile(r"(\*\*.*?\*\*)")


def _spans(line: str) -> list[Span]:
    spans = []
    for part in _BOLD.split(line):
        if not part:
            continue
        if len(part) >= 4 and part.startswith("**") and part.endswith("**"):
            spans.append(Span(text=part[2:-2], bold=True))
        else:
            spans.append(Span(text=part))
    return spans


def markdown_blocks(text: str) -> list[Block]:
    blocks = []
    for line in (text or "").split("\n"):
        if not line.strip():
            continue
        heading = _HEADING.match(line)
        if heading:
            level = len(heading.group(1))
            blocks.append(Block(kind="heading", level=level, spans=[Span(text=line[level + 1:])]))
        elif _LIST_ITEM.match(line):
            blocks.append(Block(kind="list_item", spans=_spans(line[2:])))
        else:
            blocks.append(Block(kind="paragraph", spans=_spans(line)))
    return blocks


def _heading(text: str) -> Block:
    return Block(kind="heading", level=3, spans=[Span(text=text)])


def _para(*spans: Span) -> Block:
    return Block(kind="paragraph", spans=list(spans))


def structured_blocks(g: ParentGuidance) -> list[Block]:
    t = g.teaching
    blocks = [_heading("PROBLEM"), _para(Span(text=t.problem_restatement))]

    if t.new_math_method:
        blocks += [
            _heading("NEW MATH METHOD"),
            _para(Span(text=t.new_math_method.name, bold=True)),
        ]
        if t.new_math_method.explanation:
            blocks.append(_para(Span(text=t.new_math_method.explanation)))

    blocks.append(_heading("TEACH IT"))
    for step in t.steps:
        blocks.append(_para(Span(text=step.title, bold=True)))
        blocks.append(_para(Span(text="Say this:", bold=True), Span(text=f' "{step.say_this}"')))
        if step.instruction:
            blocks.append(_para(Span(text=step.instruction)))

    if t.visual_hint:
        blocks.append(Block(kind="preformatted", spans=[Span(text=t.visual_hint)]))

    notes = t.quick_notes
    blocks += [
        _heading("QUICK NOTES"),
        Block(kind="list_item", spans=[Span(text="Concept:", bold=True), Span(text=f" {notes.concept}")]),
        Block(kind="list_item", spans=[Span(text="Common mistake:", bold=True), Span(text=f" {notes.common_mistake}")]),
        Block(kind="list_item", spans=[Span(text="If they ask:", bold=True), Span(text=f" {notes.if_they_ask}")]),
        _heading("ANSWER"),
        _para(Span(text=f"{g.answer.expression} = {g.answer.value}", bold=True)),
    ]
    return blocks


def _strip_fences(raw: str) -> str:
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw)
    return re.sub(r"\s*```$", "", raw)


def _as_markdown(mode: str, raw: str) -> RenderedGuidance:
    return RenderedGuidance(mode=mode, format="markdown", blocks=markdown_blocks(raw), raw=raw)


def render_guidance(mode: str, raw: str):
    """Render model output. Returns Ok(RenderedGuidance) or Fallback(RenderedGuidance, reason)."""
    if mode != "parent":
        return Ok(_as_markdown(mode, raw))

    try:
        data = json.loads(_strip_fences(raw))
    except (json.JSONDecodeError, TypeError) as e:
        logger.info(f"Parent guidance is not JSON, showing as text: {e}")
        return Fallback(_as_markdown(mode, raw), reason="invalid_json")

    try:
        guidance = ParentGuidance.model_validate(data)
    except ValidationError as e:
        logger.info(f"Parent guidance does not match schema ({e.error_count()} errors), showing as text")
        return Fallback(_as_markdown(mode, raw), reason="schema_mismatch")

    return Ok(RenderedGuidance(
        mode=mode, format="structured", blocks=structured_blocks(guidance),
        guidance=guidance, raw=raw,
    ))
