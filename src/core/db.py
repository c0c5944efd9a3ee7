"""SQLite database layer for courses, users, and enrollments."""

import json
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path

from src.core.schemas import CourseSummary

_COURSES_TABLE = """
CREATE TABLE IF NOT EXISTS courses (
    id               TEXT    PRIMARY KEY,
    title            TEXT    NOT NULL,
    description      TEXT    NOT NULL DEFAULT '',
    category         TEXT    NOT NULL DEFAULT '',
    difficulty       TEXT    NOT NULL DEFAULT 'beginner',
    tags_json        TEXT    NOT NULL DEFAULT '[]',
    rating           REAL    NOT NULL DEFAULT 0.0,
    enrollment_count INTEGER NOT NULL DEFAULT 0,
    status           TEXT    NOT NULL DEFAULT 'draft',
    duration_minutes INTEGER NOT NULL DEFAULT 0
);
"""

_USERS_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id              TEXT PRIMARY KEY,
    username        TEXT NOT NULL DEFAULT '',
    role            TEXT NOT NULL DEFAULT 'student',
    expertise_json  TEXT NOT NULL DEFAULT '[]'
);
"""

_ENROLLMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS enrollments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT NOT NULL,
    course_id       TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'active',
    progress        REAL NOT NULL DEFAULT 0.0,
    enrolled_at     TEXT NOT NULL,
    UNIQUE(user_id, course_id)
);
"""

# Stable ordering for published listings; position hints depend on it.
_PUBLISHED_ORDER = "ORDER BY rating DESC, enrollment_count DESC, id ASC"

_SEARCH_COLUMNS = ("title", "description", "tags_json", "category")


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_COURSES_TABLE)
    conn.execute(_USERS_TABLE)
    conn.execute(_ENROLLMENTS_TABLE)
    conn.commit()
    return conn


def upsert_course(conn: sqlite3.Connection, course: CourseSummary) -> None:
    """Insert or replace a course row by id."""
    conn.execute(
        """
        INSERT INTO courses
            (id, title, description, category, difficulty, tags_json,
             rating, enrollment_count, status, duration_minutes)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title = excluded.title,
            description = excluded.description,
            category = excluded.category,
            difficulty = excluded.difficulty,
            tags_json = excluded.tags_json,
            rating = excluded.rating,
            enrollment_count = excluded.enrollment_count,
            status = excluded.status,
            duration_minutes = excluded.duration_minutes
        """,
        (
            course.id,
            course.title,
            course.description,
            course.category,
            course.difficulty,
            json.dumps(course.tags, ensure_ascii=False),
            course.rating,
            course.enrollment_count,
            course.status,
            course.duration_minutes,
        ),
    )
    conn.commit()


def upsert_user(
    conn: sqlite3.Connection,
    user_id: str,
    username: str = "",
    role: str = "student",
    expertise: Sequence[str] = (),
) -> None:
    """Insert or replace a user row by id."""
    conn.execute(
        """
        INSERT INTO users (id, username, role, expertise_json)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            username = excluded.username,
            role = excluded.role,
            expertise_json = excluded.expertise_json
        """,
        (user_id, username, role, json.dumps(list(expertise), ensure_ascii=False)),
    )
    conn.commit()


def insert_enrollment(
    conn: sqlite3.Connection,
    user_id: str,
    course_id: str,
    status: str = "active",
    progress: float = 0.0,
    enrolled_at: datetime | None = None,
) -> bool:
    """Record an enrollment, ignoring if (user_id, course_id) already exists.

    Returns True if a new row was inserted, False if it was a duplicate.
    """
    try:
        conn.execute(
            """
            INSERT INTO enrollments (user_id, course_id, status, progress, enrolled_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                user_id,
                course_id,
                status,
                progress,
                (enrolled_at or datetime.now()).isoformat(),
            ),
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False


def list_published_courses(
    conn: sqlite3.Connection,
    limit: int,
    exclude_ids: Iterable[str] = (),
) -> list[CourseSummary]:
    """Return up to ``limit`` published courses in the stable listing order."""
    excluded = list(exclude_ids)
    sql = "SELECT * FROM courses WHERE status = 'published'"
    params: list[object] = []
    if excluded:
        sql += f" AND id NOT IN ({', '.join('?' for _ in excluded)})"
        params.extend(excluded)
    sql += f" {_PUBLISHED_ORDER} LIMIT ?"
    params.append(limit)
    rows = conn.execute(sql, params).fetchall()
    return [_row_to_course(row) for row in rows]


def search_published_courses(
    conn: sqlite3.Connection,
    terms: Sequence[str],
) -> list[CourseSummary]:
    """Return published courses where any term is a substring of any searchable column.

    SQLite LIKE only folds ASCII, so both sides go through Python's
    ``str.casefold`` and "École" matches "école".
    """
    cleaned = [t.strip() for t in terms if t.strip()]
    if not cleaned:
        return []
    clauses: list[str] = []
    params: list[object] = []
    for term in cleaned:
        pattern = f"%{_escape_like(term.casefold())}%"
        for column in _SEARCH_COLUMNS:
            clauses.append(f"casefold({column}) LIKE ? ESCAPE '\\'")
            params.append(pattern)
    sql = (
        "SELECT * FROM courses WHERE status = 'published' "
        f"AND ({' OR '.join(clauses)}) {_PUBLISHED_ORDER}"
    )
    rows = conn.execute(sql, params).fetchall()
    return [_row_to_course(row) for row in rows]


def count_enrollments_since(
    conn: sqlite3.Connection,
    since: datetime,
) -> dict[str, int]:
    """Return {course_id: enrollment count} for enrollments at or after ``since``."""
    rows = conn.execute(
        """
        SELECT course_id, COUNT(*) AS recent
        FROM enrollments
        WHERE enrolled_at >= ?
        GROUP BY course_id
        """,
        (since.isoformat(),),
    ).fetchall()
    return {row["course_id"]: row["recent"] for row in rows}


def get_course(conn: sqlite3.Connection, course_id: str) -> CourseSummary | None:
    """Fetch a single course by id, any status."""
    row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
    return _row_to_course(row) if row is not None else None


def get_user(conn: sqlite3.Connection, user_id: str) -> sqlite3.Row | None:
    """Fetch a raw user row by id."""
    return conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()


def get_user_enrollments(
    conn: sqlite3.Connection,
    user_id: str,
) -> list[tuple[str, CourseSummary]]:
    """Return (enrollment_status, course) pairs for a user, oldest first."""
    rows = conn.execute(
        """
        SELECT e.status AS enrollment_status, c.*
        FROM enrollments e JOIN courses c ON c.id = e.course_id
        WHERE e.user_id = ?
        ORDER BY e.enrolled_at ASC, e.id ASC
        """,
        (user_id,),
    ).fetchall()
    return [(row["enrollment_status"], _row_to_course(row)) for row in rows]


def _row_to_course(row: sqlite3.Row) -> CourseSummary:
    return CourseSummary(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        difficulty=row["difficulty"],
        tags=json.loads(row["tags_json"]),
        rating=row["rating"],
        enrollment_count=row["enrollment_count"],
        status=row["status"],
        duration_minutes=row["duration_minutes"],
    )


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value is not None else None


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
