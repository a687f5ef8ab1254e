"""LLM service construction from settings and config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prpulse_core.providers.anthropic import AnthropicService
from prpulse_core.providers.base import BaseLLMService, LLMConfigurationError
from prpulse_core.providers.openai import OpenAIService

if TYPE_CHECKING:
    from prpulse_store.base import BaseStore

PROVIDERS = ("anthropic", "openai")

_API_KEY_CONFIG = {
    "anthropic": "anthropic_api_key",
    "openai": "openai_api_key",
}


def create_llm_service(provider: str, api_key: str, model: str | None = None) -> BaseLLMService:
    if provider == "anthropic":
        return AnthropicService(api_key=api_key, model=model)
    if provider == "openai":
        return OpenAIService(api_key=api_key, model=model)
    raise ValueError(f"Unknown LLM provider: {provider!r}. Choose 'anthropic' or 'openai'.")


def resolve_llm_settings(store: BaseStore, config: dict) -> tuple[str | None, str | None, str | None]:
    """Return (provider, model, api_key).

    Store settings take precedence over the config file so a team can switch
    provider without editing .prpulse.yml. The API key always comes from the
    environment via config.
    """
    provider = store.get_setting("llm_provider") or config.get("llm_provider")
    model = store.get_setting("llm_model") or config.get("llm_model")
    api_key = config.get(_API_KEY_CONFIG[provider]) if provider in _API_KEY_CONFIG else None
    return provider, model, api_key


def create_llm_service_from_settings(store: BaseStore, config: dict) -> BaseLLMService:
    provider, model, api_key = resolve_llm_settings(store, config)
    if not provider or not model:
        raise LLMConfigurationError("LLM provider not configured. Set llm_provider and llm_model.")
    if provider not in PROVIDERS:
        raise LLMConfigurationError(f"Unknown LLM provider: {provider!r}. Choose 'anthropic' or 'openai'.")
    if not api_key:
        env_var = _API_KEY_CONFIG[provider].upper()
        raise LLMConfigurationError(f"{env_var} environment variable is not set.")
    return create_llm_service(provider, api_key=api_key, model=model)
