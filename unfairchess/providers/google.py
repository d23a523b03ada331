"""
Gemini via google-genai, using its native async client (client.aio).

Gemini calls the assistant role "model" and takes the system prompt as
system_instruction.
"""

from __future__ import annotations

from google import genai
from google.genai import types

from unfairchess.providers.base import LLMProvider, Message


class GoogleProvider(LLMProvider):
    provider_name = "google"

    def __init__(self, api_key: str, model: str) -> None:
        super().__init__(model)
        self._client = genai.Client(api_key=api_key)

    async def _send(self, messages: list[Message], *, max_tokens, temperature) -> str | None:
        system, turns = self.split_system(messages)
        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=[
                types.Content(
                    role="model" if m.role == "assistant" else "user",
                    parts=[types.Part(text=m.content)],
                )
                for m in turns
            ],
            config=types.GenerateContentConfig(
                system_instruction=system,
                max_output_tokens=max_tokens,
                temperature=temperature,
            ),
        )
        return response.text
