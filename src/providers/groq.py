"""Groq provider (OpenAI-compatible API)."""

from src.providers.openai import OpenAIProvider


class GroqProvider(OpenAIProvider):
    """LLM provider using Groq's OpenAI-compatible endpoint."""

    base_url = "https://api.groq.com/openai/v1"

    @property
    def provider_id(self) -> str:
        return "groq"

    @property
    def default_model(self) -> str:
        return "meta-llama/llama-4-scout-17b-16e-instruct"

    @property
    def env_var(self) -> str | None:
        return "GROQ_API_KEY"
