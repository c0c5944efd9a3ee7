"""Deterministic degraded-mode ranking used when no AI path yields records.

Both rankers sort by a heuristic value, then rating, then enrollment count
(all descending), then title and id ascending, so identical inputs always
produce identical order. Scores are rank weights within the batch; the
heuristic value is kept in ``relevance``.
"""

import logging
import math
import re
from collections.abc import Sequence

from src.core.schemas import CourseSummary, Provenance, RecommendationRecord, UserProfile
from src.pipeline.matcher import rank_score

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3

_WORD = re.compile(r"\w+")

# Profile heuristic weights
CATEGORY_WEIGHT = 3.0
DIFFICULTY_WEIGHT = 2.0
TAG_WEIGHT = 1.0
RATING_WEIGHT = 0.5
POPULARITY_WEIGHT = 0.3


def tokenize_query(query: str) -> list[str]:
    """Distinct lowercase words of at least MIN_TOKEN_LENGTH chars, in query order."""
    tokens: list[str] = []
    for word in _WORD.findall(query.casefold()):
        if len(word) >= MIN_TOKEN_LENGTH and word not in tokens:
            tokens.append(word)
    return tokens


def search_terms(query: str) -> list[str]:
    """Terms for the catalog search; the whole query when it has no usable tokens."""
    tokens = tokenize_query(query)
    if tokens:
        return tokens
    whole = query.strip().casefold()
    return [whole] if whole else []


def keyword_relevance(course: CourseSummary, terms: Sequence[str]) -> int:
    """Number of distinct terms found in the course's combined text."""
    text = course.search_text()
    return sum(1 for t in terms if t in text)


def rank_by_keywords(
    query: str,
    courses: Sequence[CourseSummary],
    limit: int,
) -> list[RecommendationRecord]:
    """Rank catalog search hits for a query. Courses matching no term are dropped."""
    terms = search_terms(query)
    scored = [
        (keyword_relevance(c, terms), c)
        for c in _unique_courses(courses)
        if c.status == "published"
    ]
    scored = [(value, c) for value, c in scored if value > 0]
    top = _sorted(scored)[:limit]

    logger.debug("Keyword fallback: %d hits for terms %s", len(scored), terms)
    return [
        RecommendationRecord(
            course=course,
            score=rank_score(rank, len(top)),
            reason=f'Found based on search for: "{query}"',
            provenance=Provenance.KEYWORD_FALLBACK,
            relevance=float(value),
        )
        for rank, (value, course) in enumerate(top)
    ]


def profile_affinity(course: CourseSummary, profile: UserProfile) -> float:
    """Heuristic fit between a course and a learner's enrollment history."""
    value = 0.0
    if course.category in profile.preferred_categories:
        value += CATEGORY_WEIGHT
    if course.difficulty in profile.preferred_difficulties:
        value += DIFFICULTY_WEIGHT
    overlap = sum(1 for tag in course.tags if tag in profile.preferred_tags)
    value += overlap * TAG_WEIGHT
    value += course.rating * RATING_WEIGHT
    value += math.log(course.enrollment_count + 1) * POPULARITY_WEIGHT
    return value


def rank_by_profile(
    profile: UserProfile,
    courses: Sequence[CourseSummary],
    limit: int,
) -> list[RecommendationRecord]:
    """Rank courses by profile affinity, skipping ones the user is enrolled in."""
    enrolled = set(profile.enrolled_course_ids)
    scored = [
        (profile_affinity(c, profile), c)
        for c in _unique_courses(courses)
        if c.id not in enrolled and c.status == "published"
    ]
    top = _sorted(scored)[:limit]
    return [
        RecommendationRecord(
            course=course,
            score=rank_score(rank, len(top)),
            reason="Recommended from your learning history",
            provenance=Provenance.PROFILE_FALLBACK,
            relevance=round(value, 3),
        )
        for rank, (value, course) in enumerate(top)
    ]


def _sorted(scored: list[tuple[float, CourseSummary]]) -> list[tuple[float, CourseSummary]]:
    return sorted(
        scored,
        key=lambda item: (
            -item[0],
            -item[1].rating,
            -item[1].enrollment_count,
            item[1].title.lower(),
            item[1].id,
        ),
    )


def _unique_courses(courses: Sequence[CourseSummary]) -> list[CourseSummary]:
    seen: set[str] = set()
    result: list[CourseSummary] = []
    for c in courses:
        if c.id not in seen:
            seen.add(c.id)
            result.append(c)
    return result
