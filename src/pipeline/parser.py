"""Turn free-form model output into course hints.

Parse stages, first usable wins:
  1. Whole text as JSON (markdown fences stripped)
  2. First ``[ { ... } ]`` substring as JSON
  3. Comma-separated tokens, first integer of each as a 1-based position

Anything else is ``Unparseable`` so the orchestrator can fall back.

Course outlines are a single JSON object, taken whole or from the first
``{ ... }`` span, and validated as a ``CourseOutline``.
"""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from src.core.schemas import CourseOutline

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_EMBEDDED_ARRAY = re.compile(r"\[\s*\{[\s\S]*?\}\s*\]")
_EMBEDDED_OBJECT = re.compile(r"\{[\s\S]*\}")
_FIRST_INT = re.compile(r"\d+")

_ID_KEYS = ("courseId", "course_id", "id")
_WRAPPER_KEYS = ("recommendations", "courses")


class StructuredHint(BaseModel):
    """A course reference by id and/or title from structured model output."""

    model_config = ConfigDict(frozen=True)

    course_id: str | None = None
    title: str | None = None
    reason: str = ""
    priority: str | None = None


class ParsedStructured(BaseModel):
    model_config = ConfigDict(frozen=True)

    hints: list[StructuredHint]


class ParsedPositions(BaseModel):
    """1-based positions into the catalog excerpt shown in the prompt."""

    model_config = ConfigDict(frozen=True)

    positions: list[int]


class Unparseable(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


ParseResult = ParsedStructured | ParsedPositions | Unparseable


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    cleaned = _FENCE_OPEN.sub("", text.strip())
    return _FENCE_CLOSE.sub("", cleaned)


def parse_recommendations(text: str, *, excerpt_size: int, limit: int) -> ParseResult:
    """Parse provider text into hints.

    Args:
        text: Raw completion text.
        excerpt_size: Number of courses shown in the prompt; bounds positions.
        limit: Maximum number of hints to keep.

    Returns:
        ParsedStructured, ParsedPositions, or Unparseable.
    """
    cleaned = strip_fences(text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        data = None
    if data is not None:
        result = _from_json(data, excerpt_size=excerpt_size, limit=limit)
        if result is not None:
            return result

    match = _EMBEDDED_ARRAY.search(cleaned)
    if match:
        try:
            embedded = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Embedded JSON array did not parse")
        else:
            result = _from_json(embedded, excerpt_size=excerpt_size, limit=limit)
            if result is not None:
                return result

    positions = _positions_from_tokens(cleaned.split(","))
    kept = _clean_positions(positions, excerpt_size=excerpt_size, limit=limit)
    if kept:
        return ParsedPositions(positions=kept)

    preview = cleaned[:80].replace("\n", " ")
    return Unparseable(reason=f"no usable hints in response: '{preview}'")


def parse_course_outline(text: str) -> CourseOutline | Unparseable:
    """Parse an outline reply; anything that is not a valid outline is Unparseable."""
    cleaned = strip_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _EMBEDDED_OBJECT.search(cleaned)
        if not match:
            return Unparseable(reason="no JSON object in outline response")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            return Unparseable(reason=f"invalid outline JSON: {e.msg}")

    if not isinstance(data, dict):
        return Unparseable(reason="outline response is not a JSON object")
    try:
        return CourseOutline.model_validate(data)
    except ValidationError as e:
        return Unparseable(reason=f"outline failed validation: {e.error_count()} errors")


def _from_json(data: Any, *, excerpt_size: int, limit: int) -> ParseResult | None:
    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            return None
    if not isinstance(data, list):
        return None

    if data and all(isinstance(item, int) and not isinstance(item, bool) for item in data):
        kept = _clean_positions(data, excerpt_size=excerpt_size, limit=limit)
        return ParsedPositions(positions=kept) if kept else None

    hints = [h for h in (_to_hint(item) for item in data) if h is not None]
    if not hints:
        return None
    return ParsedStructured(hints=hints[:limit])


def _to_hint(item: Any) -> StructuredHint | None:
    if not isinstance(item, dict):
        return None
    course_id = next(
        (str(item[k]).strip() for k in _ID_KEYS if item.get(k) not in (None, "")),
        None,
    )
    title = str(item["title"]).strip() if item.get("title") else None
    if not course_id and not title:
        return None
    priority = item.get("priority")
    return StructuredHint(
        course_id=course_id or None,
        title=title or None,
        reason=str(item.get("reason") or "").strip(),
        priority=str(priority).lower() if priority else None,
    )


def _positions_from_tokens(tokens: list[str]) -> list[int]:
    positions: list[int] = []
    for token in tokens:
        match = _FIRST_INT.search(token)
        if match:
            positions.append(int(match.group(0)))
    return positions


def _clean_positions(positions: list[int], *, excerpt_size: int, limit: int) -> list[int]:
    """Drop out-of-range and duplicate positions, keep first occurrences, truncate."""
    kept: list[int] = []
    for p in positions:
        if 1 <= p <= excerpt_size and p not in kept:
            kept.append(p)
    return kept[:limit]
