"""
OpenAI chat completions, and every OpenAI-compatible gateway (OpenRouter,
Groq, Kimi/Moonshot) through base_url.

Reasoning models (o1/o3/o4 families) reject a custom temperature, so it is
left out for them. Token budgets use max_completion_tokens.
"""

from __future__ import annotations

from openai import AsyncOpenAI

from unfairchess.providers.base import LLMProvider, Message, ProviderError

_REASONING_PREFIXES = ("o1", "o3", "o4")


def _is_reasoning_model(model: str) -> bool:
    # gateway ids carry a vendor prefix, e.g. "openai/o3-mini"
    bare = model.removeprefix("openai/")
    return bare.startswith(_REASONING_PREFIXES)


class OpenAIProvider(LLMProvider):
    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        provider_label: str = "openai",
        default_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(model)
        self.provider_name = provider_label
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, default_headers=default_headers)

    async def _send(self, messages: list[Message], *, max_tokens, temperature) -> str | None:
        extra: dict = {}
        if temperature is not None and not _is_reasoning_model(self.model):
            extra["temperature"] = temperature
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[m._asdict() for m in messages],  # type: ignore[misc]
            max_completion_tokens=max_tokens,
            **extra,
        )
        if not response.choices:
            raise ProviderError(self.provider_name, "Reply contained no choices.")
        return response.choices[0].message.content
