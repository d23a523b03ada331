"""
Builds an LLMProvider from a (provider, model) pair in the `ai` config.

Gateways that speak the OpenAI wire protocol (OpenRouter, Groq, Kimi) reuse
OpenAIProvider with their own base_url and label.
"""

from __future__ import annotations

from unfairchess.config import ProviderConfig
from unfairchess.providers.anthropic import AnthropicProvider
from unfairchess.providers.base import LLMProvider, Message, ProviderError
from unfairchess.providers.google import GoogleProvider
from unfairchess.providers.openai import OpenAIProvider

__all__ = [
    "LLMProvider",
    "Message",
    "ProviderError",
    "create_provider",
]

_NATIVE = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
}
_GATEWAYS = ("openrouter", "groq", "kimi")

# OpenRouter shows this name on its usage dashboard
_GATEWAY_HEADERS = {"openrouter": {"X-Title": "Unfair Chess"}}


def create_provider(
    provider_name: str,
    model_id: str,
    providers_cfg: dict[str, ProviderConfig],
) -> LLMProvider:
    """
    Raises ValueError when the provider is unknown, has no section under
    `providers`, lacks credentials, or is a gateway without base_url.
    """
    section = providers_cfg.get(provider_name)
    if section is None:
        raise ValueError(f"No 'providers.{provider_name}' section in config")
    token = section.auth_token
    if not token:
        raise ValueError(f"'providers.{provider_name}' has neither api_key nor bearer_token")

    if provider_name == "openai":
        return OpenAIProvider(api_key=token, model=model_id, base_url=section.base_url)
    if provider_name in _NATIVE:
        return _NATIVE[provider_name](api_key=token, model=model_id)
    if provider_name in _GATEWAYS:
        if not section.base_url:
            raise ValueError(f"'providers.{provider_name}' needs a base_url")
        return OpenAIProvider(
            api_key=token,
            model=model_id,
            base_url=section.base_url,
            provider_label=provider_name,
            default_headers=_GATEWAY_HEADERS.get(provider_name),
        )
    supported = ", ".join([*_NATIVE, *_GATEWAYS])
    raise ValueError(f"Unknown provider '{provider_name}' (supported: {supported})")
