"""Configuration schemas for LLM Orchestra."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_RETRYABLE_ERRORS = ("RATE_LIMIT", "TIMEOUT", "NETWORK_ERROR", "503", "529")


class ProviderCredentials(BaseModel):
    """Credentials and endpoint for one provider."""

    api_key: str | None = Field(default=None, description="API key for the provider")
    api_key_env: str | None = Field(
        default=None, description="Environment variable holding the API key"
    )
    base_url: str | None = Field(default=None, description="Override for the API base URL")
    organization_id: str | None = Field(default=None, description="Organization identifier")

    def resolve_api_key(self) -> str | None:
        """Explicit key first, then the configured environment variable."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.getenv(self.api_key_env)
        return None


class ProvidersConfig(BaseModel):
    """Credentials per provider name."""

    anthropic: ProviderCredentials | None = None
    openai: ProviderCredentials | None = None
    google: ProviderCredentials | None = None
    mistral: ProviderCredentials | None = None

    def configured(self) -> dict[str, ProviderCredentials]:
        """Providers whose credentials resolve to an API key."""
        result = {}
        for name in type(self).model_fields:
            credentials = getattr(self, name)
            if credentials is not None and credentials.resolve_api_key():
                result[name] = credentials
        return result


class RetryConfig(BaseModel):
    """Retry policy applied to each chain entry. Not mutated after construction."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries per chain entry")
    initial_delay_ms: float = Field(default=1000.0, ge=0.0)
    max_delay_ms: float = Field(default=30000.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, gt=0.0)
    retryable_errors: tuple[str, ...] = Field(
        default=DEFAULT_RETRYABLE_ERRORS,
        description="Tokens matched against an error's code, status and message",
    )

    @classmethod
    def from_overrides(cls, overrides: RetryConfig | dict[str, Any] | None) -> RetryConfig:
        """Merge partial overrides over the default policy."""
        if overrides is None:
            return cls()
        if isinstance(overrides, RetryConfig):
            return overrides
        return cls(**{k: v for k, v in overrides.items() if v is not None})


class TracingConfig(BaseModel):
    enabled: bool = Field(default=False, description="Record and export spans")
    export_endpoint: str | None = Field(
        default=None, description="URL spans are POSTed to as JSON"
    )
    sample_rate: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Fraction of spans to keep"
    )
    include_prompts: bool = False
    include_responses: bool = False


class CostTrackingConfig(BaseModel):
    enabled: bool = False
    alert_threshold: float | None = Field(default=None, gt=0.0)
    budget_limit: float | None = Field(default=None, gt=0.0)


class ObservabilityConfig(BaseModel):
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    cost_tracking: CostTrackingConfig = Field(default_factory=CostTrackingConfig)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Root logging level")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid logging level: {v}")
        return level


class OrchestraConfig(BaseModel):
    """Top-level configuration."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    retry: RetryConfig | None = None
    default_model: str | None = None
    default_timeout_ms: float = Field(default=60000.0, gt=0.0)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> OrchestraConfig:
        """Create OrchestraConfig from a (possibly partial) dictionary.

        Provider sections set to ``null`` in YAML are dropped, and a partial
        ``retry`` section is merged over the default retry policy.
        """
        data = dict(config_dict)

        providers = data.get("providers") or {}
        data["providers"] = {k: v for k, v in providers.items() if v is not None}

        if data.get("retry") is not None:
            data["retry"] = RetryConfig.from_overrides(data["retry"])

        return cls.model_validate(data)

    def masked_dump(self) -> dict[str, Any]:
        """Dump for display, with API keys masked."""
        data = self.model_dump(mode="json")
        for credentials in (data.get("providers") or {}).values():
            if credentials and credentials.get("api_key"):
                credentials["api_key"] = "***"
        return data
