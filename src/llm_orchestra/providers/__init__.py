"""Provider adapters and the model resolver.

Importing this package registers the bundled adapters.
"""

from .base import BaseProvider
from .registry import (
    MODEL_PROVIDER_MAP,
    create_providers,
    get_models_for_provider,
    get_provider_class,
    get_provider_for_model,
    list_registered_providers,
    register_provider,
)
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider
from .google_provider import GoogleProvider

__all__ = [
    "MODEL_PROVIDER_MAP",
    "AnthropicProvider",
    "BaseProvider",
    "GoogleProvider",
    "OpenAIProvider",
    "create_providers",
    "get_models_for_provider",
    "get_provider_class",
    "get_provider_for_model",
    "list_registered_providers",
    "register_provider",
]
