"""Tests for resolving parsed hints against the catalog excerpt."""

import pytest

from src.core.schemas import CourseSummary, Provenance
from src.pipeline.matcher import TITLE_RULES, CatalogExcerpt, match_hints, rank_score
from src.pipeline.parser import ParsedPositions, ParsedStructured, StructuredHint


def _course(course_id: str, title: str) -> CourseSummary:
    return CourseSummary(id=course_id, title=title)


@pytest.fixture
def excerpt() -> CatalogExcerpt:
    return CatalogExcerpt([
        _course("c-py", "Introduction to Python Programming"),
        _course("c-viz", "Data Visualization with Python"),
        _course("c-ml", "Advanced Machine Learning"),
        _course("c-art", "Watercolor Painting Basics"),
    ])


def _match(parsed, excerpt: CatalogExcerpt):  # type: ignore[no-untyped-def]
    return match_hints(
        parsed, excerpt, provenance=Provenance.PRIMARY_AI, default_reason="AI recommended",
    )


class TestCatalogExcerpt:
    def test_positions_are_one_based(self, excerpt: CatalogExcerpt) -> None:
        assert excerpt.at_position(1).id == "c-py"  # type: ignore[union-attr]
        assert excerpt.at_position(4).id == "c-art"  # type: ignore[union-attr]
        assert excerpt.at_position(0) is None
        assert excerpt.at_position(5) is None

    def test_snapshot_is_immutable(self) -> None:
        courses = [_course("a", "A")]
        snap = CatalogExcerpt(courses)
        courses.append(_course("b", "B"))
        assert len(snap) == 1

    def test_title_rules_in_order(self, excerpt: CatalogExcerpt) -> None:
        found = excerpt.first_by_title("data visualization with python", TITLE_RULES)
        assert found is not None and found.id == "c-viz"
        found = excerpt.first_by_title("Machine Learning", TITLE_RULES)
        assert found is not None and found.id == "c-ml"

    def test_blank_title(self, excerpt: CatalogExcerpt) -> None:
        assert excerpt.first_by_title("  ", TITLE_RULES) is None


class TestRankScore:
    def test_first_is_one(self) -> None:
        assert rank_score(0, 3) == 1.0

    def test_strictly_decreasing_and_positive(self) -> None:
        scores = [rank_score(r, 5) for r in range(5)]
        assert scores == sorted(scores, reverse=True)
        assert len(set(scores)) == 5
        assert min(scores) > 0


class TestPositionHints:
    def test_scores_follow_hint_order(self, excerpt: CatalogExcerpt) -> None:
        records = _match(ParsedPositions(positions=[2, 1, 3]), excerpt)
        assert [r.course_id for r in records] == ["c-viz", "c-py", "c-ml"]
        assert [r.score for r in records] == pytest.approx([1.0, 2 / 3, 1 / 3])
        assert all(r.reason == "AI recommended" for r in records)
        assert all(r.provenance is Provenance.PRIMARY_AI for r in records)

    def test_out_of_range_dropped_keeps_rank_gaps(self, excerpt: CatalogExcerpt) -> None:
        records = _match(ParsedPositions(positions=[9, 1]), excerpt)
        assert [r.course_id for r in records] == ["c-py"]
        assert records[0].score == pytest.approx(0.5)


class TestStructuredHints:
    def test_id_then_title_resolution(self, excerpt: CatalogExcerpt) -> None:
        parsed = ParsedStructured(hints=[
            StructuredHint(course_id="c-art", reason="Relax", priority="low"),
            StructuredHint(course_id="unknown", title="advanced machine learning"),
            StructuredHint(title="Python Programming"),
        ])
        records = _match(parsed, excerpt)
        assert [r.course_id for r in records] == ["c-art", "c-ml", "c-py"]
        assert records[0].reason == "Relax"
        assert records[0].priority == "low"
        assert records[1].reason == "AI recommended"

    def test_unmatched_dropped(self, excerpt: CatalogExcerpt) -> None:
        parsed = ParsedStructured(hints=[StructuredHint(title="Quantum Basket Weaving")])
        assert _match(parsed, excerpt) == []

    def test_duplicate_course_dropped(self, excerpt: CatalogExcerpt) -> None:
        parsed = ParsedStructured(hints=[
            StructuredHint(course_id="c-py"),
            StructuredHint(title="Introduction to Python Programming"),
            StructuredHint(course_id="c-ml"),
        ])
        records = _match(parsed, excerpt)
        assert [r.course_id for r in records] == ["c-py", "c-ml"]
        assert records[1].score == pytest.approx(1 / 3)
