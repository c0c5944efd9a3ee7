"""Abstract collaborators the recommendation core reads from."""

from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence
from datetime import datetime

from src.core.schemas import CourseSummary, UserProfile


class CatalogLookup(ABC):
    """Read-only access to the course catalog.

    Implementations must return a stable order for a given catalog state so a
    captured listing can be resolved by position later in the same call.
    Unreachable backends raise ``CatalogUnavailableError``.
    """

    @abstractmethod
    async def list_published(
        self,
        limit: int,
        *,
        exclude_ids: Collection[str] = (),
    ) -> list[CourseSummary]:
        """Return up to ``limit`` published courses, best-rated first."""

    @abstractmethod
    async def search_published(self, terms: Sequence[str]) -> list[CourseSummary]:
        """Return published courses matching any term in title/description/tags/category."""

    @abstractmethod
    async def get_course(self, course_id: str) -> CourseSummary | None:
        """Return a single course by id, or None."""

    @abstractmethod
    async def recent_enrollment_counts(self, since: datetime) -> dict[str, int]:
        """Return {course_id: enrollments at or after ``since``}; absent ids had none."""


class UserProfileLookup(ABC):
    """Optional requester context used to personalize prompts."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> UserProfile | None:
        """Return the user's profile, or None if the user is unknown."""
