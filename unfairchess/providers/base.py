"""
LLM provider interface.

Providers are constructed explicitly from config and injected into the
opponent chain; nothing reads credentials from the environment behind the
caller's back.

complete() is the one entry point. It delegates the network call to the
subclass's _send() and turns whatever the SDK raises into ProviderError, so
the chain only ever has to handle one failure type.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import NamedTuple

logger = logging.getLogger(__name__)


class Message(NamedTuple):
    role: str     # "system" | "user" | "assistant"
    content: str


class ProviderError(Exception):
    """A provider call failed, timed out, or returned nothing usable."""

    def __init__(self, provider: str, message: str, cause: Exception | None = None) -> None:
        self.provider = provider
        self.cause = cause
        super().__init__(f"[{provider}] {message}")


class LLMProvider(ABC):
    provider_name: str = "unknown"

    def __init__(self, model: str) -> None:
        self.model = model

    @property
    def label(self) -> str:
        """"provider/model" tag used in logs and strategy results."""
        return f"{self.provider_name}/{self.model}"

    async def complete(
        self,
        messages: list[Message],
        *,
        max_tokens: int = 150,
        temperature: float | None = None,
    ) -> str:
        """
        Send messages and return the stripped reply text.

        Args:
            messages: Conversation, system message first.
            max_tokens: A move plus a one-line comment fits in the default.
            temperature: None leaves the provider default.

        Raises:
            ProviderError: for any SDK or transport failure.
        """
        try:
            text = await self._send(messages, max_tokens=max_tokens, temperature=temperature)
        except ProviderError:
            raise
        except Exception as exc:
            logger.error("Request failed [%s]: %s", self.label, exc)
            raise ProviderError(self.provider_name, str(exc), cause=exc) from exc
        return (text or "").strip()

    @abstractmethod
    async def _send(
        self,
        messages: list[Message],
        *,
        max_tokens: int,
        temperature: float | None,
    ) -> str | None:
        """Perform the SDK call and return the raw reply text."""

    @staticmethod
    def split_system(messages: list[Message]) -> tuple[str | None, list[Message]]:
        """Separate the system prompt for APIs that take it as its own parameter."""
        system = next((m.content for m in messages if m.role == "system"), None)
        return system, [m for m in messages if m.role != "system"]
