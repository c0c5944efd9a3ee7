"""AI provider registry with lazy loading.

Usage:
    from src.providers import get_provider

    provider = get_provider("groq", timeout=10.0)
    result = await provider.complete(prompt, system=system_prompt)
"""

from __future__ import annotations

import importlib

from src.providers.base import LLMProvider

__all__ = ["LLMProvider", "available_providers", "get_provider"]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("src.providers.anthropic", "AnthropicProvider"),
    "gemini": ("src.providers.gemini", "GeminiProvider"),
    "groq": ("src.providers.groq", "GroqProvider"),
    "ollama": ("src.providers.ollama", "OllamaProvider"),
    "openai": ("src.providers.openai", "OpenAIProvider"),
}


def get_provider(
    name: str,
    *,
    model: str | None = None,
    timeout: float | None = None,
) -> LLMProvider:
    """Instantiate and return an AI provider by name.

    Args:
        name: Provider identifier (anthropic, gemini, groq, ollama, openai).
        model: Override the provider's default model.
        timeout: Per-request timeout in seconds. None keeps the provider default.

    Returns:
        An LLMProvider instance.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    if timeout is None:
        return cls(model=model)  # type: ignore[no-any-return]
    return cls(model=model, timeout=timeout)  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
