"""Claude via the anthropic SDK. The system prompt travels in `system`."""

from __future__ import annotations

import anthropic

from unfairchess.providers.base import LLMProvider, Message

_MAX_TEMPERATURE = 1.0


class AnthropicProvider(LLMProvider):
    provider_name = "anthropic"

    def __init__(self, api_key: str, model: str) -> None:
        super().__init__(model)
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def _send(self, messages: list[Message], *, max_tokens, temperature) -> str | None:
        system, turns = self.split_system(messages)
        extra: dict = {}
        if temperature is not None:
            extra["temperature"] = min(temperature, _MAX_TEMPERATURE)
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system or "",
            messages=[{"role": m.role, "content": m.content} for m in turns],  # type: ignore[misc]
            **extra,
        )
        return "".join(getattr(block, "text", "") for block in response.content)
