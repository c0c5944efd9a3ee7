"""CLI entry point for the course recommendation engine."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from src.catalog.loader import CatalogDocument, load_catalog
from src.catalog.sqlite import SqliteCatalog, SqliteUserProfiles
from src.core.config import Settings
from src.core.db import init_db
from src.core.errors import CatalogUnavailableError, UserNotFoundError
from src.core.schemas import CourseSummary, OutlineResult, RecommendationResult
from src.pipeline.discovery import (
    build_learning_path,
    courses_by_category,
    find_similar_courses,
    trending_courses,
)
from src.pipeline.orchestrator import RecommendationOrchestrator

DEFAULT_CONFIG = "config/settings.yaml"


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Course recommendation engine - AI-assisted with keyword fallback",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- recommend ---
    rec_parser = subparsers.add_parser("recommend", help="Recommend courses for a query")
    rec_parser.add_argument("query", help="Natural-language learning goal")
    rec_parser.add_argument("--user", help="Requester user id for personalization")
    rec_parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    rec_parser.add_argument("--json", action="store_true", help="Print the raw JSON payload")
    rec_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show providers and usage gate without calling any provider",
    )
    _add_common(rec_parser)

    # --- personalized ---
    pers_parser = subparsers.add_parser(
        "personalized",
        help="Recommend courses from a user's enrollment history",
    )
    pers_parser.add_argument("--user", required=True, help="User id")
    pers_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    pers_parser.add_argument("--json", action="store_true", help="Print the raw JSON payload")
    _add_common(pers_parser)

    # --- similar ---
    sim_parser = subparsers.add_parser("similar", help="List courses similar to a course")
    sim_parser.add_argument("course_id", help="Course id")
    sim_parser.add_argument("--limit", type=int, default=5, help="Maximum results")
    _add_common(sim_parser)

    # --- trending ---
    trend_parser = subparsers.add_parser(
        "trending",
        help="List courses with the most recent enrollment activity",
    )
    trend_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    _add_common(trend_parser)

    # --- category ---
    cat_parser = subparsers.add_parser("category", help="List published courses in a category")
    cat_parser.add_argument("category", help="Category name, e.g. 'data-science'")
    cat_parser.add_argument("--user", help="Leave out courses this user is enrolled in")
    cat_parser.add_argument("--limit", type=int, default=10, help="Maximum results")
    _add_common(cat_parser)

    # --- outline ---
    outline_parser = subparsers.add_parser(
        "outline",
        help="Draft a course outline with the configured AI providers",
    )
    outline_parser.add_argument("title", help="Course title")
    outline_parser.add_argument("--description", default="", help="Short course description")
    outline_parser.add_argument("--json", action="store_true", help="Print the raw JSON payload")
    _add_common(outline_parser)

    # --- learning-path ---
    path_parser = subparsers.add_parser(
        "learning-path",
        help="Order courses for a skill from beginner to advanced",
    )
    path_parser.add_argument("skill", help="Target skill, e.g. 'python'")
    _add_common(path_parser)

    # --- load-catalog ---
    load_parser = subparsers.add_parser(
        "load-catalog",
        help="Load courses, users, and enrollments from a YAML file",
    )
    load_parser.add_argument("--file", required=True, help="Path to catalog YAML")
    _add_common(load_parser)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Load settings, falling back to defaults when the default path is absent."""
    if path == DEFAULT_CONFIG and not Path(path).exists():
        logging.getLogger(__name__).info("No %s found - using default settings", path)
        return Settings()
    return Settings.from_yaml(path)


def print_result(result: RecommendationResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_payload(), indent=2))
        return

    source = "AI" if result.ai_generated else "fallback"
    print(f"{len(result.courses)} recommendations ({result.provenance.value}, {source})")
    if result.fallback_reason:
        print(f"  Fallback reason: {result.fallback_reason}")
    for i, rec in enumerate(result.courses, start=1):
        c = rec.course
        print(f"  {i}. [{rec.score:.3f}] {c.title} ({c.category}, {c.difficulty}) - {rec.reason}")
    u = result.usage
    print(f"AI usage: {u.total}/{u.max} total, {u.requests_in_window} in window")


def print_courses(courses: list[CourseSummary]) -> None:
    for i, c in enumerate(courses, start=1):
        print(f"  {i}. {c.title} ({c.category}, {c.difficulty}, rating {c.rating:g})")


def print_outline(result: OutlineResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_payload(), indent=2))
        return

    if not result.success or result.outline is None:
        print(f"Outline unavailable for '{result.title}': {result.error}")
        if result.raw_response:
            print(f"  Raw response: {result.raw_response[:200]}")
        return

    outline = result.outline
    source = result.provenance.value if result.provenance else "unknown"
    print(f"Outline for '{result.title}' ({source}, {result.model}): "
          f"{len(outline.lessons)} lessons, {outline.total_duration_minutes} minutes")
    for heading, items in (
        ("Objectives", outline.objectives),
        ("Prerequisites", outline.prerequisites),
        ("Learning outcomes", outline.learning_outcomes),
    ):
        if items:
            print(f"{heading}:")
            for item in items:
                print(f"  - {item}")
    print("Lessons:")
    for i, lesson in enumerate(outline.lessons, start=1):
        duration = f" ({lesson.duration} min)" if lesson.duration is not None else ""
        print(f"  {i}. {lesson.title}{duration}")


def dry_run(orchestrator: RecommendationOrchestrator, query: str) -> None:
    """Print what would happen without calling any provider."""
    slots = orchestrator.provider_slots()
    if not slots:
        print("[DRY RUN] No providers configured")
    for role, provider in slots:
        status = "OK" if provider.is_configured() else f"MISSING {provider.env_var}"
        print(f"[DRY RUN] {role}: {provider.provider_id} ({provider.model}) key {status}")

    gate = "OPEN" if orchestrator.usage.can_proceed() else "CLOSED"
    stats = orchestrator.usage.stats()
    print(f"[DRY RUN] Usage gate {gate}: {stats.total}/{stats.max} total")
    print(f"[DRY RUN] Would recommend for: '{query}'")


async def run_recommend(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        orchestrator = RecommendationOrchestrator.from_settings(
            settings,
            SqliteCatalog(conn),
            profiles=SqliteUserProfiles(conn),
        )
        if args.dry_run:
            dry_run(orchestrator, args.query)
            return
        result = await orchestrator.get_chat_recommendations(args.query, args.user, args.limit)
        print_result(result, args.json)
    finally:
        conn.close()


async def run_personalized(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        orchestrator = RecommendationOrchestrator.from_settings(
            settings,
            SqliteCatalog(conn),
            profiles=SqliteUserProfiles(conn),
        )
        result = await orchestrator.get_personalized_recommendations(args.user, args.limit)
        print_result(result, args.json)
    finally:
        conn.close()


async def run_similar(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        courses = await find_similar_courses(SqliteCatalog(conn), args.course_id, args.limit)
        print(f"{len(courses)} courses similar to '{args.course_id}'")
        print_courses(courses)
    finally:
        conn.close()


async def run_trending(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        trending = await trending_courses(SqliteCatalog(conn), args.limit)
        print(f"{len(trending)} trending courses")
        for i, t in enumerate(trending, start=1):
            c = t.course
            print(f"  {i}. [{t.trending_score:.1f}] {c.title} ({c.category}, "
                  f"{t.recent_enrollments} new this week)")
    finally:
        conn.close()


async def run_category(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        exclude_ids: list[str] = []
        if args.user:
            profile = await SqliteUserProfiles(conn).get_profile(args.user)
            if profile is None:
                msg = f"User not found: {args.user}"
                raise UserNotFoundError(msg)
            exclude_ids = profile.enrolled_course_ids
        courses = await courses_by_category(
            SqliteCatalog(conn), args.category, exclude_ids=exclude_ids, limit=args.limit,
        )
        print(f"{len(courses)} courses in '{args.category}'")
        print_courses(courses)
    finally:
        conn.close()


async def run_outline(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        orchestrator = RecommendationOrchestrator.from_settings(settings, SqliteCatalog(conn))
        result = await orchestrator.generate_course_outline(args.title, args.description)
        print_outline(result, args.json)
    finally:
        conn.close()


async def run_learning_path(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        path = await build_learning_path(SqliteCatalog(conn), args.skill)
        print(f"Learning path for '{path.target_skill}': {len(path.courses)} courses, "
              f"{path.estimated_duration_minutes} minutes")
        print_courses(path.courses)
    finally:
        conn.close()


def cmd_load_catalog(args: argparse.Namespace, settings: Settings) -> None:
    """Handle load-catalog subcommand."""
    document = CatalogDocument.from_yaml(args.file)
    conn = init_db(settings.database.path)
    try:
        courses, users, enrollments = load_catalog(conn, document)
    finally:
        conn.close()
    print(f"Loaded {courses} courses, {users} users, {enrollments} new enrollments "
          f"into {settings.database.path}")


_ASYNC_COMMANDS = {
    "recommend": run_recommend,
    "personalized": run_personalized,
    "similar": run_similar,
    "trending": run_trending,
    "category": run_category,
    "outline": run_outline,
    "learning-path": run_learning_path,
}


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "load-catalog":
            cmd_load_catalog(args, settings)
        else:
            asyncio.run(_ASYNC_COMMANDS[args.command](args, settings))
    except (FileNotFoundError, ValueError, LookupError, CatalogUnavailableError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
