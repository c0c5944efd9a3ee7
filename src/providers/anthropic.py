"""Anthropic Claude LLM provider."""

from src.providers.base import LLMProvider


class AnthropicProvider(LLMProvider):
    """LLM provider using the Anthropic Claude API."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

    async def _request(
        self,
        prompt: str,
        *,
        system: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        api_key = self._api_key()

        try:
            import anthropic
        except ImportError:
            msg = (
                "anthropic is required for the anthropic provider. "
                "Install with: pip install 'course-recommendation-engine[anthropic]'"
            )
            raise ImportError(msg) from None

        async with anthropic.AsyncAnthropic(
            api_key=api_key, timeout=self.timeout, max_retries=0,
        ) as client:
            message = await client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )

        if not message.content:
            msg = "anthropic response contained no content blocks"
            raise ValueError(msg)
        return message.content[0].text  # type: ignore[union-attr,no-any-return]
