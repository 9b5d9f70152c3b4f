"""Configuration management for LLM Orchestra."""

from .env_loader import EnvLoader
from .loader import ConfigLoader, load_config
from .schemas import (
    CostTrackingConfig,
    LoggingConfig,
    ObservabilityConfig,
    OrchestraConfig,
    ProviderCredentials,
    ProvidersConfig,
    RetryConfig,
    TracingConfig,
)

__all__ = [
    "ConfigLoader",
    "CostTrackingConfig",
    "EnvLoader",
    "LoggingConfig",
    "ObservabilityConfig",
    "OrchestraConfig",
    "ProviderCredentials",
    "ProvidersConfig",
    "RetryConfig",
    "TracingConfig",
    "load_config",
]
