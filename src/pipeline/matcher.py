"""Resolve parsed hints against the catalog excerpt shown to the provider.

Match order per hint (first match wins):
  1. Exact course id
  2. Case-insensitive exact title
  3. Case-insensitive substring, either direction
  4. Position hints: direct 1-based index into the excerpt

The excerpt is captured once per call and reused for both prompt rendering
and resolution, so position hints always point at what the model saw.
"""

import logging
from collections.abc import Callable, Iterator, Sequence

from src.core.schemas import CourseSummary, Provenance, RecommendationRecord
from src.pipeline.parser import ParsedPositions, ParsedStructured, StructuredHint

logger = logging.getLogger(__name__)

# A title rule takes (hint_title_lower, course) and says whether it matches.
TitleRule = Callable[[str, CourseSummary], bool]


class CatalogExcerpt:
    """Immutable, ordered snapshot of the courses rendered into a prompt."""

    def __init__(self, courses: Sequence[CourseSummary]) -> None:
        self._courses: tuple[CourseSummary, ...] = tuple(courses)

    def __len__(self) -> int:
        return len(self._courses)

    def __iter__(self) -> Iterator[CourseSummary]:
        return iter(self._courses)

    @property
    def courses(self) -> tuple[CourseSummary, ...]:
        return self._courses

    def at_position(self, position: int) -> CourseSummary | None:
        """Return the course at a 1-based position, or None if out of range."""
        if 1 <= position <= len(self._courses):
            return self._courses[position - 1]
        return None

    def by_id(self, course_id: str) -> CourseSummary | None:
        return next((c for c in self._courses if c.id == course_id), None)

    def first_by_title(self, title: str, rules: Sequence[TitleRule]) -> CourseSummary | None:
        """Apply title rules in order; each rule scans the whole excerpt."""
        needle = title.lower().strip()
        if not needle:
            return None
        for rule in rules:
            found = next((c for c in self._courses if rule(needle, c)), None)
            if found is not None:
                return found
        return None


def _exact_title(needle: str, course: CourseSummary) -> bool:
    return course.title.lower().strip() == needle


def _substring_title(needle: str, course: CourseSummary) -> bool:
    haystack = course.title.lower().strip()
    return bool(haystack) and (needle in haystack or haystack in needle)


TITLE_RULES: tuple[TitleRule, ...] = (_exact_title, _substring_title)


def rank_score(rank: int, total: int) -> float:
    """Rank weight ``(N - rank) / N``: 1.0 for the first hint, strictly decreasing."""
    return (total - rank) / total


def match_hints(
    parsed: ParsedStructured | ParsedPositions,
    excerpt: CatalogExcerpt,
    *,
    provenance: Provenance,
    default_reason: str,
) -> list[RecommendationRecord]:
    """Resolve hints into records. Unmatched hints and repeat courses are dropped."""
    if isinstance(parsed, ParsedPositions):
        resolved: list[tuple[CourseSummary | None, str, str | None]] = [
            (excerpt.at_position(p), default_reason, None) for p in parsed.positions
        ]
    else:
        resolved = [
            (_resolve_structured(h, excerpt), h.reason or default_reason, h.priority)
            for h in parsed.hints
        ]

    total = len(resolved)
    records: list[RecommendationRecord] = []
    seen: set[str] = set()
    for rank, (course, reason, priority) in enumerate(resolved):
        if course is None or course.id in seen:
            continue
        seen.add(course.id)
        records.append(RecommendationRecord(
            course=course,
            score=rank_score(rank, total),
            reason=reason,
            provenance=provenance,
            priority=priority,
        ))

    dropped = total - len(records)
    if dropped:
        logger.debug("CourseMatcher: dropped %d unmatched or repeated hints", dropped)
    return records


def _resolve_structured(hint: StructuredHint, excerpt: CatalogExcerpt) -> CourseSummary | None:
    if hint.course_id:
        found = excerpt.by_id(hint.course_id)
        if found is not None:
            return found
    if hint.title:
        return excerpt.first_by_title(hint.title, TITLE_RULES)
    return None
