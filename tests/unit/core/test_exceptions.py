from llm_orchestra.core.exceptions import (
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
from llm_orchestra.routing.router import Attempt


def test_orchestra_error_carries_context():
    cause = ValueError("root cause")
    err = OrchestraError("failed", "CUSTOM", provider="openai", model="gpt-4", cause=cause)

    assert str(err) == "failed"
    assert err.message == "failed"
    assert err.code == "CUSTOM"
    assert err.provider == "openai"
    assert err.model == "gpt-4"
    assert err.cause is cause


def test_default_codes():
    assert OrchestraError("x").code == "ORCHESTRA_ERROR"
    assert ProviderError("x").code == "PROVIDER_ERROR"
    assert RateLimitError("openai").code == "RATE_LIMIT"
    assert ProviderTimeoutError("openai", 100).code == "TIMEOUT"
    assert NetworkError("x").code == "NETWORK_ERROR"
    assert ProviderNotConfiguredError("google").code == "PROVIDER_NOT_CONFIGURED"
    assert AllProvidersFailedError([]).code == "ALL_PROVIDERS_FAILED"
    assert ConfigError("x").code == "CONFIG_ERROR"
    assert CLIError("x").code == "CLI_ERROR"


def test_all_errors_share_base():
    for err in (
        ProviderError("x"),
        RateLimitError(),
        NetworkError("x"),
        ConfigError("x"),
        CLIError("x"),
    ):
        assert isinstance(err, OrchestraError)


def test_provider_error_status_alias():
    err = ProviderError("unavailable", provider="anthropic", status_code=503)

    assert err.status == 503
    assert err.status_code == 503
    assert err.provider == "anthropic"


def test_rate_limit_message_and_retry_after():
    err = RateLimitError("anthropic", retry_after_ms=1500)

    assert str(err) == "Rate limit exceeded for anthropic"
    assert err.retry_after_ms == 1500


def test_timeout_message():
    assert str(ProviderTimeoutError("openai", 2500)) == "Request timed out after 2500ms"
    assert str(ProviderTimeoutError("openai", 0.5)) == "Request timed out after 0.5ms"


def test_not_configured_message():
    err = ProviderNotConfiguredError("google", "gemini-pro")

    assert str(err) == "Provider google not configured"
    assert err.model == "gemini-pro"


def test_all_providers_failed_keeps_attempts():
    attempts = [
        Attempt("anthropic", "claude-3-opus", False, RateLimitError("anthropic"), 12.0),
        Attempt("openai", "gpt-4", False, NetworkError("reset"), 8.0),
    ]

    err = AllProvidersFailedError(attempts)

    assert str(err) == "All providers failed: anthropic/claude-3-opus, openai/gpt-4"
    assert err.attempts == attempts
    assert err.attempts is not attempts
