"""Configuration models and YAML loader for the course recommendation engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class ProviderConfig(BaseModel):
    """A single AI provider slot (primary or secondary)."""

    name: str
    model: str | None = None
    timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        v = v.lower().strip()
        if not v:
            msg = "provider name must not be empty"
            raise ValueError(msg)
        return v


class UsageLimits(BaseModel):
    """Ceilings enforced by the UsageTracker before each provider call."""

    max_total_calls: int = Field(default=250, ge=1)
    max_calls_per_minute: int = Field(default=10, ge=1)
    window_seconds: float = Field(default=60.0, gt=0.0)


class RecommenderConfig(BaseModel):
    """Knobs for prompt building, parsing, and result sizing."""

    primary: ProviderConfig | None = Field(
        default_factory=lambda: ProviderConfig(name="openai"),
    )
    secondary: ProviderConfig | None = Field(
        default_factory=lambda: ProviderConfig(name="groq"),
    )
    catalog_fetch_limit: int = Field(default=50, ge=1)
    excerpt_size: int = Field(default=20, ge=1)
    default_limit: int = Field(default=5, ge=1)
    max_limit: int = Field(default=20, ge=1)
    max_query_length: int = Field(default=500, ge=1)
    max_tokens: int = Field(default=200, ge=1)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    ai_budget_seconds: float = Field(default=25.0, gt=0.0)
    outline_max_tokens: int = Field(default=1500, ge=1)
    outline_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    @model_validator(mode="after")
    def sizes_consistent(self) -> "RecommenderConfig":
        if self.excerpt_size > self.catalog_fetch_limit:
            msg = (
                f"excerpt_size ({self.excerpt_size}) must not exceed "
                f"catalog_fetch_limit ({self.catalog_fetch_limit})"
            )
            raise ValueError(msg)
        if self.default_limit > self.max_limit:
            msg = (
                f"default_limit ({self.default_limit}) must not exceed "
                f"max_limit ({self.max_limit})"
            )
            raise ValueError(msg)
        return self


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/catalog.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    usage: UsageLimits = Field(default_factory=UsageLimits)
    recommender: RecommenderConfig = Field(default_factory=RecommenderConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
