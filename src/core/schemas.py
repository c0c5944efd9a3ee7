"""Core data models for the course recommendation engine."""

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ALLOWED_DIFFICULTY = ("beginner", "intermediate", "advanced")
ALLOWED_ROLES = ("student", "instructor", "admin")

ProviderRole = Literal["primary", "secondary"]


class _Frozen(BaseModel):
    """Frozen model that dumps camelCase keys for callers (``by_alias=True``)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Provenance(str, Enum):
    """Which strategy produced a recommendation batch."""

    PRIMARY_AI = "primary-ai"
    SECONDARY_AI = "secondary-ai"
    KEYWORD_FALLBACK = "keyword-fallback"
    PROFILE_FALLBACK = "profile-fallback"

    @classmethod
    def for_role(cls, role: ProviderRole) -> "Provenance":
        return cls.PRIMARY_AI if role == "primary" else cls.SECONDARY_AI


class CourseSummary(_Frozen):
    """Read-only view of a course supplied by the catalog collaborator."""

    id: str
    title: str
    description: str = ""
    category: str = ""
    difficulty: str = "beginner"
    tags: list[str] = Field(default_factory=list)
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    enrollment_count: int = Field(default=0, ge=0)
    status: Literal["draft", "published", "archived"] = "published"
    duration_minutes: int = Field(default=0, ge=0)

    @field_validator("difficulty")
    @classmethod
    def difficulty_in_allowed(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ALLOWED_DIFFICULTY:
            msg = f"difficulty must be one of {list(ALLOWED_DIFFICULTY)}, got '{v}'"
            raise ValueError(msg)
        return v

    def search_text(self) -> str:
        """Casefolded title, description, tags, and category joined for matching."""
        parts = [self.title, self.description, *self.tags, self.category]
        return " ".join(parts).casefold()


class UserProfile(_Frozen):
    """Requester context derived from the user record and enrollment history."""

    user_id: str
    username: str = ""
    role: str = "student"
    expertise: list[str] = Field(default_factory=list)
    preferred_categories: list[str] = Field(default_factory=list)
    preferred_difficulties: list[str] = Field(default_factory=list)
    preferred_tags: list[str] = Field(default_factory=list)
    completion_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    enrollment_count: int = Field(default=0, ge=0)
    enrolled_course_ids: list[str] = Field(default_factory=list)

    @field_validator("role")
    @classmethod
    def role_in_allowed(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ALLOWED_ROLES:
            msg = f"role must be one of {list(ALLOWED_ROLES)}, got '{v}'"
            raise ValueError(msg)
        return v


class ProviderResponse(_Frozen):
    """Raw completion text from one provider call. Lives for one orchestration only."""

    text: str
    role: ProviderRole
    provider_id: str
    model: str


class ProviderFailure(_Frozen):
    """A provider call that produced nothing usable (transport, timeout, empty)."""

    role: ProviderRole
    provider_id: str
    reason: str


ProviderResult = ProviderResponse | ProviderFailure


class RecommendationRecord(_Frozen):
    """One ranked recommendation.

    ``score`` is a rank weight in (0, 1], strictly decreasing within a batch.
    ``relevance`` carries the heuristic value for fallback batches.
    """

    course: CourseSummary
    score: float = Field(gt=0.0, le=1.0)
    reason: str
    provenance: Provenance
    priority: str | None = None
    relevance: float | None = None

    @property
    def course_id(self) -> str:
        return self.course.id


class UsageSnapshot(_Frozen):
    """Point-in-time view of the UsageTracker."""

    total: int
    max: int
    remaining: int
    requests_in_window: int


class RecommendationResult(_Frozen):
    """What the orchestrator hands back to its caller."""

    query: str
    courses: list[RecommendationRecord]
    ai_generated: bool
    provenance: Provenance
    usage: UsageSnapshot
    model: str | None = None
    fallback_reason: str | None = None

    def to_payload(self) -> dict[str, object]:
        """Dump as a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


_MINUTES = re.compile(r"\d+")


class Lesson(_Frozen):
    """One lesson of a generated course outline. ``duration`` is in minutes."""

    title: str
    content: str = ""
    duration: int | None = Field(default=None, ge=0)
    order: int | None = None

    @field_validator("duration", mode="before")
    @classmethod
    def duration_minutes(cls, v: Any) -> Any:
        # Models often answer "45 minutes" instead of 45.
        if isinstance(v, str):
            match = _MINUTES.search(v)
            return int(match.group(0)) if match else None
        return v


class CourseOutline(_Frozen):
    """AI-drafted structure for a new course."""

    objectives: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    lessons: list[Lesson] = Field(min_length=1)
    learning_outcomes: list[str] = Field(default_factory=list)

    @property
    def total_duration_minutes(self) -> int:
        return sum(lesson.duration or 0 for lesson in self.lessons)


class OutlineResult(_Frozen):
    """Outcome of one outline request.

    On failure ``error`` names the reason (same vocabulary as recommendation
    fallback reasons) and ``raw_response`` keeps any text the provider sent.
    """

    title: str
    success: bool
    outline: CourseOutline | None = None
    error: str | None = None
    raw_response: str | None = None
    provenance: Provenance | None = None
    model: str | None = None
    usage: UsageSnapshot

    def to_payload(self) -> dict[str, object]:
        """Dump as a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
