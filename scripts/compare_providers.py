#!/usr/bin/env python3
"""Compare AI providers on the same course-recommendation prompt.

Builds one chat prompt from the catalog excerpt, sends it to each provider,
resolves every reply through the parser and matcher, and prints a comparison
table with pairwise overlap of the recommended courses.

Usage:
    python scripts/compare_providers.py "learn data visualization"
    python scripts/compare_providers.py "python" --providers openai groq ollama
    python scripts/compare_providers.py "painting" --config config/settings.yaml
"""

import argparse
import asyncio
import itertools
import logging
import sys
import time
from pathlib import Path

# Ensure project root is on the path when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.catalog.sqlite import SqliteCatalog
from src.core.config import Settings
from src.core.db import init_db
from src.core.schemas import Provenance, ProviderFailure
from src.pipeline.matcher import CatalogExcerpt, match_hints
from src.pipeline.parser import Unparseable, parse_recommendations
from src.pipeline.prompts import CHAT_SYSTEM_PROMPT, build_chat_prompt
from src.providers import available_providers, get_provider

logging.basicConfig(level=logging.WARNING)


async def _run_provider(
    name: str,
    prompt: str,
    excerpt: CatalogExcerpt,
    settings: Settings,
    limit: int,
) -> tuple[float, str, list[str]]:
    """Returns (latency_seconds, outcome_label, matched_course_ids)."""
    provider = get_provider(name)
    if not provider.is_configured():
        return 0.0, f"missing {provider.env_var}", []

    rc = settings.recommender
    start = time.perf_counter()
    result = await provider.complete(
        prompt,
        system=CHAT_SYSTEM_PROMPT,
        max_tokens=rc.max_tokens,
        temperature=rc.temperature,
    )
    latency = time.perf_counter() - start

    if isinstance(result, ProviderFailure):
        return latency, f"failed: {result.reason[:40]}", []

    parsed = parse_recommendations(result.text, excerpt_size=len(excerpt), limit=limit)
    if isinstance(parsed, Unparseable):
        return latency, "unparseable", []
    records = match_hints(
        parsed, excerpt, provenance=Provenance.PRIMARY_AI, default_reason="",
    )
    if not records:
        return latency, "no-match", []
    return latency, "ok", [r.course_id for r in records]


def _jaccard(a: list[str], b: list[str]) -> float:
    left, right = set(a), set(b)
    if not left and not right:
        return 1.0
    return len(left & right) / len(left | right)


def _print_table(rows: dict[str, tuple[float, str, list[str]]]) -> None:
    header = f"{'Provider':<12} {'Latency':>8} {'Outcome':<30} Courses"
    print("\n" + "=" * 80)
    print(header)
    print("=" * 80)
    for name, (latency, outcome, ids) in rows.items():
        print(f"{name:<12} {latency:>7.2f}s {outcome:<30} {', '.join(ids)}")
    print("=" * 80)


def _print_agreement(rows: dict[str, tuple[float, str, list[str]]]) -> None:
    answered = {name: ids for name, (_, outcome, ids) in rows.items() if outcome == "ok"}
    if len(answered) < 2:
        print("\nFewer than two providers answered; no agreement to compute.")
        return
    print("\nPairwise overlap (Jaccard):")
    for (a, ids_a), (b, ids_b) in itertools.combinations(answered.items(), 2):
        print(f"  {a} vs {b}: {_jaccard(ids_a, ids_b):.2f}")


async def _compare(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        rc = settings.recommender
        courses = await SqliteCatalog(conn).list_published(rc.catalog_fetch_limit)
    finally:
        conn.close()

    excerpt = CatalogExcerpt(courses[: rc.excerpt_size])
    if not excerpt:
        print(f"ERROR: no published courses in {settings.database.path}")
        sys.exit(1)
    print(f"Catalog excerpt: {len(excerpt)} courses")

    prompt = build_chat_prompt(args.query, excerpt, None)
    rows: dict[str, tuple[float, str, list[str]]] = {}
    for name in args.providers:
        print(f"Querying {name}...")
        rows[name] = await _run_provider(name, prompt, excerpt, settings, args.limit)

    _print_table(rows)
    _print_agreement(rows)
    print("\nDone.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Compare AI recommendation providers")
    parser.add_argument("query", help="Learning goal to send to every provider")
    parser.add_argument(
        "--providers",
        nargs="+",
        default=["openai", "groq"],
        choices=available_providers(),
        help="Providers to compare (default: openai groq)",
    )
    parser.add_argument("--limit", type=int, default=5, help="Courses kept per provider")
    parser.add_argument("--config", default=None, help="Settings YAML path")
    args = parser.parse_args()

    settings = Settings.from_yaml(args.config) if args.config else Settings()
    asyncio.run(_compare(args, settings))


if __name__ == "__main__":
    main()
