"""Abstract base class for AI completion providers."""

import asyncio
import logging
import os
from abc import ABC, abstractmethod

from src.core.schemas import ProviderFailure, ProviderResponse, ProviderResult, ProviderRole

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class LLMProvider(ABC):
    """Base class that every AI provider must implement.

    Subclasses only implement ``_request``; it may raise anything. ``complete``
    turns every failure into a ``ProviderFailure`` so callers branch on values
    instead of catching exceptions. Cancellation is never swallowed.
    """

    def __init__(
        self,
        model: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._model = model
        self._timeout = timeout

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @property
    def model(self) -> str:
        return self._model or self.default_model

    @property
    def timeout(self) -> float:
        return self._timeout

    def is_configured(self) -> bool:
        """True when the provider's API key is present (or none is required)."""
        return self.env_var is None or bool(os.environ.get(self.env_var))

    def _api_key(self) -> str:
        """Read the API key from the environment, raising ValueError if missing."""
        if self.env_var is None:
            msg = f"{self.provider_id} provider does not use an API key"
            raise ValueError(msg)
        api_key = os.environ.get(self.env_var)
        if not api_key:
            msg = f"{self.env_var} environment variable is required"
            raise ValueError(msg)
        return api_key

    @abstractmethod
    async def _request(
        self,
        prompt: str,
        *,
        system: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Issue one completion request and return the first completion's text."""

    async def complete(
        self,
        prompt: str,
        *,
        system: str,
        max_tokens: int = 200,
        temperature: float = 0.3,
        role: ProviderRole = "primary",
    ) -> ProviderResult:
        """Send one prompt, bounded by ``timeout``, and wrap the outcome.

        Returns:
            ProviderResponse with the stripped completion text, or
            ProviderFailure for any transport, SDK, timeout, or empty-payload
            problem.
        """
        logger.info("Sending prompt to %s (%s) as %s", self.provider_id, self.model, role)
        try:
            text = await asyncio.wait_for(
                self._request(
                    prompt,
                    system=system,
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning(
                "%s provider '%s' timed out after %.1fs", role, self.provider_id, self._timeout,
            )
            return ProviderFailure(role=role, provider_id=self.provider_id, reason="timeout")
        except Exception as e:
            logger.warning(
                "%s provider '%s' failed: %s", role, self.provider_id, e, exc_info=True,
            )
            return ProviderFailure(role=role, provider_id=self.provider_id, reason=str(e))

        if not text or not text.strip():
            logger.warning("%s provider '%s' returned an empty completion", role, self.provider_id)
            return ProviderFailure(
                role=role, provider_id=self.provider_id, reason="empty completion",
            )

        return ProviderResponse(
            text=text.strip(),
            role=role,
            provider_id=self.provider_id,
            model=self.model,
        )
