"""Tests for the CLI entry point."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from main import main, parse_args

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    for var in ("OPENAI_API_KEY", "GROQ_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    path = tmp_path / "settings.yaml"
    path.write_text(f"database:\n  path: {tmp_path / 'catalog.db'}\n")
    main(["load-catalog", "--file", str(FIXTURES_DIR / "catalog.yaml"), "--config", str(path)])
    return str(path)


class TestParseArgs:
    def test_recommend_defaults(self) -> None:
        args = parse_args(["recommend", "learn python"])
        assert args.query == "learn python"
        assert args.limit is None
        assert args.json is False
        assert args.config == "config/settings.yaml"

    def test_personalized_requires_user(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["personalized"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])

    def test_outline_defaults(self) -> None:
        args = parse_args(["outline", "Sourdough Basics"])
        assert args.title == "Sourdough Basics"
        assert args.description == ""
        assert args.json is False

    def test_category_user_optional(self) -> None:
        args = parse_args(["category", "art"])
        assert args.user is None
        assert args.limit == 10


class TestCommands:
    def test_load_catalog_output(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        main(["load-catalog", "--file", str(FIXTURES_DIR / "catalog.yaml"),
              "--config", config_path])
        out = capsys.readouterr().out
        assert "Loaded 5 courses, 2 users, 0 new enrollments" in out

    def test_recommend_json(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["recommend", "painting", "--json", "--config", config_path])
        payload = json.loads(capsys.readouterr().out)
        assert payload["provenance"] == "keyword-fallback"
        assert payload["fallbackReason"] == "no-provider"
        assert payload["courses"][0]["course"]["id"] == "c-watercolor"

    def test_recommend_text(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["recommend", "python", "--limit", "2", "--config", config_path])
        out = capsys.readouterr().out
        assert "2 recommendations (keyword-fallback, fallback)" in out
        assert "AI usage: 0/250 total" in out

    def test_dry_run(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["recommend", "python", "--dry-run", "--config", config_path])
        out = capsys.readouterr().out
        assert "[DRY RUN] primary: openai (gpt-3.5-turbo) key MISSING OPENAI_API_KEY" in out
        assert "[DRY RUN] Usage gate OPEN: 0/250 total" in out

    def test_personalized(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["personalized", "--user", "u-alice", "--json", "--config", config_path])
        payload = json.loads(capsys.readouterr().out)
        assert payload["provenance"] == "profile-fallback"

    def test_similar(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["similar", "c-data-viz", "--config", config_path])
        out = capsys.readouterr().out
        assert "2 courses similar to 'c-data-viz'" in out

    def test_learning_path(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["learning-path", "python", "--config", config_path])
        out = capsys.readouterr().out
        assert "Learning path for 'python': 3 courses, 1320 minutes" in out

    def test_trending(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["trending", "--limit", "2", "--config", config_path])
        out = capsys.readouterr().out
        assert "2 trending courses" in out
        assert (
            "1. [1212.2] Introduction to Python Programming (programming, 1 new this week)"
            in out
        )

    def test_category(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        capsys.readouterr()
        main(["category", "programming", "--config", config_path])
        out = capsys.readouterr().out
        assert "1 courses in 'programming'" in out
        assert "Introduction to Python Programming" in out

    def test_category_excludes_user_enrollments(
        self, config_path: str, capsys: pytest.CaptureFixture[str],
    ) -> None:
        capsys.readouterr()
        main(["category", "programming", "--user", "u-alice", "--config", config_path])
        assert "0 courses in 'programming'" in capsys.readouterr().out

    def test_outline_without_provider(
        self, config_path: str, capsys: pytest.CaptureFixture[str],
    ) -> None:
        capsys.readouterr()
        main(["outline", "Sourdough Basics", "--config", config_path])
        out = capsys.readouterr().out
        assert "Outline unavailable for 'Sourdough Basics': no-provider" in out

    def test_outline_json(
        self, config_path: str, capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        reply = '{"objectives": ["Bake"], "lessons": [{"title": "Starter", "duration": 40}]}'
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = reply
        mock_openai = MagicMock()
        client = mock_openai.AsyncOpenAI.return_value
        client.__aenter__.return_value = client
        client.__aexit__.return_value = False
        client.chat.completions.create = AsyncMock(return_value=response)
        monkeypatch.setenv("OPENAI_API_KEY", "sk")

        capsys.readouterr()
        with patch.dict("sys.modules", {"openai": mock_openai}):
            main(["outline", "Sourdough Basics", "--json", "--config", config_path])
        payload = json.loads(capsys.readouterr().out)
        assert payload["success"] is True
        assert payload["provenance"] == "primary-ai"
        assert payload["outline"]["lessons"][0]["title"] == "Starter"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 1500
        assert kwargs["temperature"] == 0.7


class TestErrors:
    def test_missing_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["recommend", "python", "--config", str(tmp_path / "nope.yaml")])
        assert exc.value.code == 1
        assert "Error loading config" in capsys.readouterr().err

    def test_empty_query(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["recommend", "   ", "--config", config_path])
        assert exc.value.code == 1
        assert "valid query" in capsys.readouterr().err

    def test_unknown_user(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["personalized", "--user", "nobody", "--config", config_path])
        assert exc.value.code == 1
        assert "User not found" in capsys.readouterr().err

    def test_unknown_course(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            main(["similar", "nope", "--config", config_path])
        assert "Course not found" in capsys.readouterr().err

    def test_category_unknown_user(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["category", "art", "--user", "nobody", "--config", config_path])
        assert exc.value.code == 1
        assert "User not found: nobody" in capsys.readouterr().err

    def test_outline_empty_title(self, config_path: str, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["outline", "  ", "--config", config_path])
        assert exc.value.code == 1
        assert "course title" in capsys.readouterr().err
