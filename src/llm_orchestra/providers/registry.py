"""
Model resolution table and provider adapter registration
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_orchestra.providers.base import BaseProvider
from llm_orchestra.utils.logging import get_logger

if TYPE_CHECKING:
    from llm_orchestra.config.schemas import ProvidersConfig

logger = get_logger("providers.registry")


MODEL_PROVIDER_MAP: dict[str, str] = {
    # Anthropic
    "claude-3-opus": "anthropic",
    "claude-3-sonnet": "anthropic",
    "claude-3-haiku": "anthropic",
    "claude-3.5-sonnet": "anthropic",
    "claude-3.5-haiku": "anthropic",
    "claude-3-opus-20240229": "anthropic",
    "claude-3-sonnet-20240229": "anthropic",
    "claude-3-haiku-20240307": "anthropic",
    "claude-3-5-sonnet-20241022": "anthropic",
    "claude-3-5-haiku-20241022": "anthropic",
    # OpenAI
    "gpt-4": "openai",
    "gpt-4-turbo": "openai",
    "gpt-4-turbo-preview": "openai",
    "gpt-4o": "openai",
    "gpt-4o-mini": "openai",
    "gpt-3.5-turbo": "openai",
    "gpt-3.5-turbo-16k": "openai",
    # Google
    "gemini-pro": "google",
    "gemini-pro-vision": "google",
    "gemini-1.5-pro": "google",
    "gemini-1.5-flash": "google",
    "gemini-2.0-flash": "google",
}

_PREFIX_PROVIDERS: tuple[tuple[str, str], ...] = (
    ("claude", "anthropic"),
    ("gpt", "openai"),
    ("gemini", "google"),
    ("mistral", "mistral"),
)


def get_provider_for_model(model: str) -> str | None:
    """Resolve a model name to a provider name, or None when unknown."""
    if model in MODEL_PROVIDER_MAP:
        return MODEL_PROVIDER_MAP[model]

    for prefix, provider in _PREFIX_PROVIDERS:
        if model.startswith(prefix):
            return provider

    return None


def get_models_for_provider(provider: str) -> list[str]:
    """Known model names that resolve to ``provider`` by exact match."""
    return [model for model, name in MODEL_PROVIDER_MAP.items() if name == provider]


# Module-level registry for adapter classes (filled by @register_provider)
_provider_registry: dict[str, type[BaseProvider]] = {}


def register_provider(name: str):
    """Decorator to register a provider adapter class under ``name``."""

    def decorator(cls: type[BaseProvider]) -> type[BaseProvider]:
        cls.name = name
        _provider_registry[name] = cls
        logger.debug(f"Registered provider adapter: {name}")
        return cls

    return decorator


def get_provider_class(name: str) -> type[BaseProvider] | None:
    return _provider_registry.get(name)


def list_registered_providers() -> list[str]:
    return sorted(_provider_registry)


def create_providers(config: ProvidersConfig) -> dict[str, BaseProvider]:
    """Instantiate every registered adapter whose credentials carry an API key.

    Providers without credentials, or without a registered adapter class, are
    left out; the router records them as "not configured" when a request
    needs them.
    """
    providers: dict[str, BaseProvider] = {}

    for name, credentials in config.configured().items():
        provider_class = _provider_registry.get(name)
        if provider_class is None:
            logger.warning(f"No adapter registered for provider '{name}', skipping")
            continue

        providers[name] = provider_class(
            api_key=credentials.resolve_api_key(),
            base_url=credentials.base_url,
            organization_id=credentials.organization_id,
        )
        logger.debug(f"Created provider adapter: {name}")

    logger.info(f"Configured providers: {sorted(providers) or 'none'}")
    return providers
