"""Load a YAML catalog document (courses, users, enrollments) into SQLite."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from src.core.db import insert_enrollment, upsert_course, upsert_user
from src.core.schemas import CourseSummary

logger = logging.getLogger(__name__)


class UserRecord(BaseModel):
    """A user entry in the catalog document."""

    id: str
    username: str = ""
    role: Literal["student", "instructor", "admin"] = "student"
    expertise: list[str] = Field(default_factory=list)


class EnrollmentRecord(BaseModel):
    """An enrollment entry in the catalog document."""

    user_id: str
    course_id: str
    status: Literal["pending", "active", "completed", "dropped"] = "active"
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    enrolled_at: datetime | None = None


class CatalogDocument(BaseModel):
    """Top-level shape of a catalog YAML file."""

    courses: list[CourseSummary] = Field(default_factory=list)
    users: list[UserRecord] = Field(default_factory=list)
    enrollments: list[EnrollmentRecord] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "CatalogDocument":
        """Load and validate a catalog document from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Catalog file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


def load_catalog(conn: sqlite3.Connection, document: CatalogDocument) -> tuple[int, int, int]:
    """Upsert every course and user, then insert enrollments.

    Returns (courses, users, new_enrollments) counts.
    """
    for course in document.courses:
        upsert_course(conn, course)
    for user in document.users:
        upsert_user(conn, user.id, user.username, user.role, user.expertise)

    new_enrollments = 0
    for e in document.enrollments:
        if insert_enrollment(
            conn, e.user_id, e.course_id, e.status, e.progress, e.enrolled_at,
        ):
            new_enrollments += 1

    logger.info(
        "Loaded %d courses, %d users, %d new enrollments",
        len(document.courses), len(document.users), new_enrollments,
    )
    return len(document.courses), len(document.users), new_enrollments
