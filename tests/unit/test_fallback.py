"""Tests for keyword and profile fallback ranking."""

from pathlib import Path

import pytest

from src.catalog.loader import CatalogDocument
from src.core.schemas import CourseSummary, Provenance, UserProfile
from src.pipeline.fallback import (
    keyword_relevance,
    profile_affinity,
    rank_by_keywords,
    rank_by_profile,
    search_terms,
    tokenize_query,
)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def courses() -> list[CourseSummary]:
    return CatalogDocument.from_yaml(FIXTURES_DIR / "catalog.yaml").courses


class TestTokenize:
    def test_short_words_dropped(self) -> None:
        assert tokenize_query("I want to learn AI and Python") == ["want", "learn", "and", "python"]

    def test_distinct_in_order(self) -> None:
        assert tokenize_query("Data, data & more DATA") == ["data", "more"]

    def test_search_terms_whole_query_when_no_tokens(self) -> None:
        assert search_terms("  AI ") == ["ai"]

    def test_search_terms_blank(self) -> None:
        assert search_terms("   ") == []

    def test_non_ascii_words_casefolded(self) -> None:
        assert tokenize_query("École de PÂTISSERIE") == ["école", "pâtisserie"]


class TestKeywordRanking:
    def test_relevance_counts_distinct_terms(self, courses: list[CourseSummary]) -> None:
        viz = next(c for c in courses if c.id == "c-data-viz")
        assert keyword_relevance(viz, ["python", "data", "painting"]) == 2

    def test_python_data(self, courses: list[CourseSummary]) -> None:
        records = rank_by_keywords("python data", courses, limit=5)
        assert [r.course_id for r in records] == ["c-ml-advanced", "c-data-viz", "c-python-intro"]
        assert [r.relevance for r in records] == [2.0, 2.0, 1.0]
        assert [r.score for r in records] == pytest.approx([1.0, 2 / 3, 1 / 3])
        assert all(r.provenance is Provenance.KEYWORD_FALLBACK for r in records)
        assert records[0].reason == 'Found based on search for: "python data"'

    def test_non_ascii_query_matches_accented_tags(self) -> None:
        course = CourseSummary(id="c1", title="Baking", tags=["Pâtisserie"], status="published")
        records = rank_by_keywords("PÂTISSERIE", [course], limit=5)
        assert [r.course_id for r in records] == ["c1"]

    def test_drafts_and_non_matches_excluded(self, courses: list[CourseSummary]) -> None:
        records = rank_by_keywords("react javascript", courses, limit=5)
        assert records == []

    def test_limit(self, courses: list[CourseSummary]) -> None:
        assert len(rank_by_keywords("python", courses, limit=2)) == 2

    def test_deterministic_with_ties(self) -> None:
        twins = [
            CourseSummary(id="b", title="Python B", rating=4.0, enrollment_count=10),
            CourseSummary(id="a", title="Python A", rating=4.0, enrollment_count=10),
            CourseSummary(id="c", title="Python C", rating=4.0, enrollment_count=20),
        ]
        first = rank_by_keywords("python", twins, limit=3)
        second = rank_by_keywords("python", list(reversed(twins)), limit=3)
        assert [r.course_id for r in first] == ["c", "a", "b"]
        assert [r.course_id for r in second] == ["c", "a", "b"]

    def test_duplicates_collapsed(self, courses: list[CourseSummary]) -> None:
        records = rank_by_keywords("painting", courses + courses, limit=5)
        assert [r.course_id for r in records] == ["c-watercolor"]


class TestProfileRanking:
    @pytest.fixture
    def profile(self) -> UserProfile:
        return UserProfile(
            user_id="u-alice",
            preferred_categories=["programming", "art"],
            preferred_difficulties=["beginner"],
            preferred_tags=["Python", "painting"],
            enrolled_course_ids=["c-python-intro", "c-watercolor"],
        )

    def test_excludes_enrolled_and_drafts(
        self, courses: list[CourseSummary], profile: UserProfile,
    ) -> None:
        records = rank_by_profile(profile, courses, limit=10)
        ids = {r.course_id for r in records}
        assert ids == {"c-data-viz", "c-ml-advanced"}
        assert all(r.provenance is Provenance.PROFILE_FALLBACK for r in records)
        assert records[0].score == 1.0

    def test_category_match_dominates(self, profile: UserProfile) -> None:
        matching = CourseSummary(id="m", title="M", category="art", rating=3.0)
        popular = CourseSummary(id="p", title="P", category="cooking", rating=5.0,
                                enrollment_count=50)
        assert profile_affinity(matching, profile) > profile_affinity(popular, profile)
        records = rank_by_profile(profile, [popular, matching], limit=2)
        assert [r.course_id for r in records] == ["m", "p"]
        assert records[0].relevance is not None
