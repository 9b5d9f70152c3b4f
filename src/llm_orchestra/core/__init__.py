"""Core error taxonomy and error handling for LLM Orchestra."""

from .error_handler import handle_error, safe_entrypoint
from .exceptions import (
    AllProvidersFailedError,
    CLIError,
    ConfigError,
    NetworkError,
    OrchestraError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    RateLimitError,
)

__all__ = [
    "AllProvidersFailedError",
    "CLIError",
    "ConfigError",
    "NetworkError",
    "OrchestraError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderTimeoutError",
    "RateLimitError",
    "handle_error",
    "safe_entrypoint",
]
