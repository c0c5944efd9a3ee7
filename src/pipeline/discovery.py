"""Catalog-only discovery helpers: trending, similar, category listings, learning paths."""

import logging
from collections.abc import Collection
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from src.catalog.base import CatalogLookup
from src.core.schemas import CourseSummary

logger = logging.getLogger(__name__)

# Upper bound on courses pulled from the catalog for in-memory filtering.
DISCOVERY_FETCH_LIMIT = 500

_DIFFICULTY_ORDER = {"beginner": 1, "intermediate": 2, "advanced": 3}

# Trending score weights
TRENDING_WINDOW = timedelta(days=7)
TRENDING_RATING_WEIGHT = 2.0
TRENDING_RECENT_WEIGHT = 3.0


class LearningPath(BaseModel):
    """Courses for a target skill ordered from beginner to advanced."""

    model_config = ConfigDict(frozen=True)

    target_skill: str
    courses: list[CourseSummary]
    estimated_duration_minutes: int


class TrendingCourse(BaseModel):
    """A published course with its recent enrollment activity."""

    model_config = ConfigDict(frozen=True)

    course: CourseSummary
    recent_enrollments: int
    trending_score: float


def _by_popularity(courses: list[CourseSummary]) -> list[CourseSummary]:
    return sorted(courses, key=lambda c: (-c.rating, -c.enrollment_count, c.id))


async def trending_courses(
    catalog: CatalogLookup,
    limit: int = 10,
    *,
    now: datetime | None = None,
    window: timedelta = TRENDING_WINDOW,
) -> list[TrendingCourse]:
    """Published courses ranked by recent enrollments, rating, and total enrollments.

    score = rating * 2 + enrollments within ``window`` * 3 + enrollment_count.
    Ties break on id so the order is stable.
    """
    since = (now or datetime.now()) - window
    recent = await catalog.recent_enrollment_counts(since)
    candidates = await catalog.list_published(DISCOVERY_FETCH_LIMIT)
    scored = [
        TrendingCourse(
            course=c,
            recent_enrollments=recent.get(c.id, 0),
            trending_score=(
                c.rating * TRENDING_RATING_WEIGHT
                + recent.get(c.id, 0) * TRENDING_RECENT_WEIGHT
                + c.enrollment_count
            ),
        )
        for c in candidates
    ]
    scored.sort(key=lambda t: (-t.trending_score, t.course.id))
    logger.debug("Ranked %d trending candidates since %s", len(scored), since.isoformat())
    return scored[:limit]


async def find_similar_courses(
    catalog: CatalogLookup,
    course_id: str,
    limit: int = 5,
) -> list[CourseSummary]:
    """Published courses sharing category, difficulty, or any tag with ``course_id``.

    Raises:
        LookupError: If the course does not exist.
    """
    course = await catalog.get_course(course_id)
    if course is None:
        msg = f"Course not found: {course_id}"
        raise LookupError(msg)

    tags = set(course.tags)
    candidates = await catalog.list_published(DISCOVERY_FETCH_LIMIT, exclude_ids=[course_id])
    similar = [
        c for c in candidates
        if c.category == course.category
        or c.difficulty == course.difficulty
        or tags.intersection(c.tags)
    ]
    logger.debug("Found %d courses similar to '%s'", len(similar), course_id)
    return _by_popularity(similar)[:limit]


async def courses_by_category(
    catalog: CatalogLookup,
    category: str,
    *,
    exclude_ids: Collection[str] = (),
    limit: int = 10,
) -> list[CourseSummary]:
    """Published courses in a category (case-insensitive), best-rated first."""
    wanted = category.casefold().strip()
    candidates = await catalog.list_published(DISCOVERY_FETCH_LIMIT, exclude_ids=exclude_ids)
    matching = [c for c in candidates if c.category.casefold().strip() == wanted]
    return _by_popularity(matching)[:limit]


async def build_learning_path(catalog: CatalogLookup, target_skill: str) -> LearningPath:
    """Courses mentioning ``target_skill`` in tags, title, or description, easiest first.

    Unknown difficulty levels sort with intermediate.
    """
    skill = target_skill.casefold().strip()
    if not skill:
        msg = "target skill must not be empty"
        raise ValueError(msg)

    hits = await catalog.search_published([skill])
    related = [
        c for c in hits
        if skill in c.title.casefold()
        or skill in c.description.casefold()
        or any(skill in tag.casefold() for tag in c.tags)
    ]
    ordered = sorted(
        related,
        key=lambda c: (_DIFFICULTY_ORDER.get(c.difficulty, 2), -c.rating, c.id),
    )
    return LearningPath(
        target_skill=target_skill.strip(),
        courses=ordered,
        estimated_duration_minutes=sum(c.duration_minutes for c in ordered),
    )
