"""Integration test: SQLite catalog → orchestrator → payload, with mocked SDKs."""

import json
import sqlite3
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.catalog.loader import CatalogDocument, load_catalog
from src.catalog.sqlite import SqliteCatalog, SqliteUserProfiles
from src.core.config import Settings, UsageLimits
from src.core.db import init_db
from src.pipeline.orchestrator import RecommendationOrchestrator
from src.pipeline.usage_tracker import UsageTracker

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def conn(tmp_path: Path) -> sqlite3.Connection:
    db = init_db(tmp_path / "catalog.db")
    load_catalog(db, CatalogDocument.from_yaml(FIXTURES_DIR / "catalog.yaml"))
    return db


def _settings() -> Settings:
    return Settings.model_validate({
        "recommender": {
            "primary": {"name": "openai"},
            "secondary": {"name": "groq"},
        },
    })


def _openai_sdk(*replies: str | Exception) -> MagicMock:
    """Mock ``openai`` module whose client returns ``replies`` in call order."""
    side_effect = []
    for reply in replies:
        if isinstance(reply, Exception):
            side_effect.append(reply)
            continue
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = reply
        side_effect.append(response)
    mock_openai = MagicMock()
    client = mock_openai.AsyncOpenAI.return_value
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    client.chat.completions.create = AsyncMock(
        side_effect=side_effect,
    )
    return mock_openai


def _orchestrator(conn: sqlite3.Connection, usage: UsageTracker | None = None):  # type: ignore[no-untyped-def]
    return RecommendationOrchestrator.from_settings(
        _settings(),
        SqliteCatalog(conn),
        profiles=SqliteUserProfiles(conn),
        usage=usage,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestRecommendationPipeline:
    async def test_primary_ai_end_to_end(self, conn: sqlite3.Connection) -> None:
        # excerpt order: watercolor, ml, python-intro, data-viz
        mock_openai = _openai_sdk("4, 3")
        with (
            patch.dict("os.environ", {"OPENAI_API_KEY": "sk", "GROQ_API_KEY": "gsk"}),
            patch.dict("sys.modules", {"openai": mock_openai}),
        ):
            result = await _orchestrator(conn).get_chat_recommendations(
                "data visualization", requester_id="u-alice",
            )

        assert result.provenance.value == "primary-ai"
        assert [r.course_id for r in result.courses] == ["c-data-viz", "c-python-intro"]
        assert result.model == "gpt-3.5-turbo"

        kwargs = mock_openai.AsyncOpenAI.return_value.chat.completions.create.call_args.kwargs
        prompt = kwargs["messages"][1]["content"]
        assert "User context: Role - student, Expertise - statistics" in prompt
        assert "React" not in prompt

    async def test_failover_to_groq(self, conn: sqlite3.Connection) -> None:
        mock_openai = _openai_sdk(RuntimeError("HTTP 429"), "1")
        with (
            patch.dict("os.environ", {"OPENAI_API_KEY": "sk", "GROQ_API_KEY": "gsk"}),
            patch.dict("sys.modules", {"openai": mock_openai}),
        ):
            result = await _orchestrator(conn).get_chat_recommendations("painting")

        assert result.provenance.value == "secondary-ai"
        assert [r.course_id for r in result.courses] == ["c-watercolor"]
        base_urls = [c.kwargs["base_url"] for c in mock_openai.AsyncOpenAI.call_args_list]
        assert base_urls == [None, "https://api.groq.com/openai/v1"]
        assert result.usage.total == 2

    async def test_keyword_fallback_without_keys(self, conn: sqlite3.Connection) -> None:
        with patch.dict("os.environ", {}, clear=True):
            result = await _orchestrator(conn).get_chat_recommendations("python data")

        assert result.fallback_reason == "no-provider"
        assert [r.course_id for r in result.courses] == [
            "c-ml-advanced", "c-data-viz", "c-python-intro",
        ]

    async def test_gate_shared_across_calls(self, conn: sqlite3.Connection) -> None:
        usage = UsageTracker(UsageLimits(max_total_calls=1))
        mock_openai = _openai_sdk("1")
        with (
            patch.dict("os.environ", {"OPENAI_API_KEY": "sk"}, clear=True),
            patch.dict("sys.modules", {"openai": mock_openai}),
        ):
            orch = _orchestrator(conn, usage)
            first = await orch.get_chat_recommendations("painting")
            second = await orch.get_chat_recommendations("painting")

        assert first.ai_generated is True
        assert second.ai_generated is False
        assert second.fallback_reason == "usage-limit"
        assert mock_openai.AsyncOpenAI.return_value.chat.completions.create.await_count == 1

    async def test_personalized_fallback_payload(self, conn: sqlite3.Connection) -> None:
        with patch.dict("os.environ", {}, clear=True):
            result = await _orchestrator(conn).get_personalized_recommendations("u-alice")

        payload = json.loads(json.dumps(result.to_payload()))
        assert payload["query"] == "user:u-alice"
        assert payload["provenance"] == "profile-fallback"
        assert payload["aiGenerated"] is False
        ids = [c["course"]["id"] for c in payload["courses"]]
        assert "c-python-intro" not in ids
        assert "c-watercolor" not in ids
        assert "c-react-draft" not in ids
