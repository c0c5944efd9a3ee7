"""SQLite-backed catalog and user profile collaborators."""

import json
import logging
import sqlite3
from collections.abc import Collection, Iterable, Sequence
from datetime import datetime

from src.catalog.base import CatalogLookup, UserProfileLookup
from src.core.db import (
    count_enrollments_since,
    get_course,
    get_user,
    get_user_enrollments,
    list_published_courses,
    search_published_courses,
)
from src.core.errors import CatalogUnavailableError
from src.core.schemas import CourseSummary, UserProfile

logger = logging.getLogger(__name__)


class SqliteCatalog(CatalogLookup):
    """CatalogLookup over the ``courses`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def list_published(
        self,
        limit: int,
        *,
        exclude_ids: Collection[str] = (),
    ) -> list[CourseSummary]:
        try:
            return list_published_courses(self._conn, limit, exclude_ids)
        except sqlite3.Error as e:
            msg = f"Course catalog unavailable: {e}"
            raise CatalogUnavailableError(msg) from e

    async def search_published(self, terms: Sequence[str]) -> list[CourseSummary]:
        try:
            return search_published_courses(self._conn, terms)
        except sqlite3.Error as e:
            msg = f"Course catalog unavailable: {e}"
            raise CatalogUnavailableError(msg) from e

    async def get_course(self, course_id: str) -> CourseSummary | None:
        try:
            return get_course(self._conn, course_id)
        except sqlite3.Error as e:
            msg = f"Course catalog unavailable: {e}"
            raise CatalogUnavailableError(msg) from e

    async def recent_enrollment_counts(self, since: datetime) -> dict[str, int]:
        try:
            return count_enrollments_since(self._conn, since)
        except sqlite3.Error as e:
            msg = f"Course catalog unavailable: {e}"
            raise CatalogUnavailableError(msg) from e


class SqliteUserProfiles(UserProfileLookup):
    """Builds a UserProfile from the ``users`` row plus enrollment history."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def get_profile(self, user_id: str) -> UserProfile | None:
        try:
            row = get_user(self._conn, user_id)
            if row is None:
                return None
            enrollments = get_user_enrollments(self._conn, user_id)
        except sqlite3.Error as e:
            msg = f"User store unavailable: {e}"
            raise CatalogUnavailableError(msg) from e

        courses = [course for _, course in enrollments]
        completed = sum(1 for status, _ in enrollments if status == "completed")
        completion_rate = (completed / len(enrollments)) * 100 if enrollments else 0.0

        logger.debug(
            "Built profile for '%s': %d enrollments, %.0f%% completed",
            user_id, len(enrollments), completion_rate,
        )
        return UserProfile(
            user_id=row["id"],
            username=row["username"],
            role=row["role"],
            expertise=json.loads(row["expertise_json"]),
            preferred_categories=_unique(c.category for c in courses if c.category),
            preferred_difficulties=_unique(c.difficulty for c in courses),
            preferred_tags=_unique(tag for c in courses for tag in c.tags),
            completion_rate=completion_rate,
            enrollment_count=len(enrollments),
            enrolled_course_ids=[c.id for c in courses],
        )


def _unique(values: Iterable[str]) -> list[str]:
    """De-duplicate preserving first occurrence."""
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(v, None)
    return list(seen)
