"""OpenAI provider, also the base for OpenAI-compatible endpoints."""

from src.providers.base import LLMProvider


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI chat completions API."""

    base_url: str | None = None

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-3.5-turbo"

    @property
    def env_var(self) -> str | None:
        return "OPENAI_API_KEY"

    def _client_api_key(self) -> str:
        return self._api_key()

    async def _request(
        self,
        prompt: str,
        *,
        system: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        api_key = self._client_api_key()

        try:
            import openai
        except ImportError:
            msg = (
                f"openai is required for the {self.provider_id} provider. "
                "Install with: pip install 'course-recommendation-engine[openai]'"
            )
            raise ImportError(msg) from None

        async with openai.AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
        ) as client:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )

        if not response.choices:
            msg = f"{self.provider_id} response contained no choices"
            raise ValueError(msg)
        return response.choices[0].message.content or ""
