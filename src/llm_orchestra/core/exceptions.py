"""Error taxonomy for LLM Orchestra.

Every error raised by the orchestration layer carries a machine-readable
``code`` so that the router can classify it as retryable or fatal by plain
substring matching against its configured token set.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from llm_orchestra.routing.router import Attempt


class OrchestraError(Exception):
    """Base exception for all LLM Orchestra errors."""

    code = "ORCHESTRA_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        *,
        provider: str | None = None,
        model: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.code
        self.provider = provider
        self.model = model
        self.cause = cause
        super().__init__(message)


# ─── Provider-level errors ───────────────────────────────────────────────────


class ProviderError(OrchestraError):
    """Raised when a provider rejects or fails a request."""

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, provider=provider, **kwargs)

    @property
    def status(self) -> int | None:
        return self.status_code


class RateLimitError(OrchestraError):
    """Raised when a provider reports that the rate limit is exceeded."""

    code = "RATE_LIMIT"

    def __init__(
        self, provider: str | None = None, retry_after_ms: float | None = None, **kwargs
    ) -> None:
        self.retry_after_ms = retry_after_ms
        super().__init__(
            f"Rate limit exceeded for {provider or 'unknown provider'}",
            provider=provider,
            **kwargs,
        )


class ProviderTimeoutError(OrchestraError):
    """Raised when a provider call loses the race against its timeout."""

    code = "TIMEOUT"

    def __init__(self, provider: str | None, timeout_ms: float, **kwargs) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Request timed out after {timeout_ms:g}ms", provider=provider, **kwargs
        )


class NetworkError(OrchestraError):
    """Raised when the provider endpoint cannot be reached."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, provider: str | None = None, **kwargs) -> None:
        super().__init__(message, provider=provider, **kwargs)


class ProviderNotConfiguredError(OrchestraError):
    """Raised (and recorded) when a chain entry has no matching adapter."""

    code = "PROVIDER_NOT_CONFIGURED"

    def __init__(self, provider: str, model: str | None = None) -> None:
        super().__init__(
            f"Provider {provider} not configured", provider=provider, model=model
        )


class AllProvidersFailedError(OrchestraError):
    """Raised once every chain entry has exhausted its retry budget."""

    code = "ALL_PROVIDERS_FAILED"

    def __init__(self, attempts: Sequence[Attempt]) -> None:
        self.attempts: list[Attempt] = list(attempts)
        tried = ", ".join(f"{a.provider}/{a.model}" for a in self.attempts)
        super().__init__(f"All providers failed: {tried}")


# ─── Non-routing errors ──────────────────────────────────────────────────────


class ConfigError(OrchestraError):
    """Raised for configuration loading or parsing errors."""

    code = "CONFIG_ERROR"


class CLIError(OrchestraError):
    """Raised for CLI-specific logic or user input issues."""

    code = "CLI_ERROR"
