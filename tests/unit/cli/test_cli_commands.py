"""Tests for the typer CLI commands with a mocked Orchestra."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from llm_orchestra.cli.main import app
from llm_orchestra.core.exceptions import AllProvidersFailedError
from llm_orchestra.routing.router import Attempt
from llm_orchestra.types import StreamChunk, StreamMeta, TokenUsage

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    yield
    logging.getLogger().handlers.clear()


@pytest.fixture
def orchestra(make_response):
    mock = MagicMock()
    mock.complete = AsyncMock(return_value=make_response(content="Hi there"))
    mock.shutdown = AsyncMock()
    mock.get_providers = MagicMock(return_value=["anthropic", "openai"])
    mock.is_provider_available = AsyncMock(side_effect=lambda name: name == "anthropic")
    mock.list_models = AsyncMock(return_value=["claude-3-opus", "claude-3-haiku"])
    return mock


class TestComplete:
    def test_prints_content_and_meta(self, orchestra):
        with patch("llm_orchestra.cli.commands.run.bootstrap", return_value=orchestra):
            result = runner.invoke(
                app,
                ["complete", "claude-3-opus", "Hello", "-f", "gpt-4", "-f", "gpt-4o"],
            )

        assert result.exit_code == 0
        assert "Hi there" in result.output
        assert "[anthropic/claude-3-opus] tokens=10/20" in result.output

        request = orchestra.complete.await_args.args[0]
        assert request.model == "claude-3-opus"
        assert request.fallback == ["gpt-4", "gpt-4o"]
        assert request.tags == ["cli"]
        assert [m.role for m in request.messages] == ["user"]
        orchestra.shutdown.assert_awaited_once()

    def test_system_prompt_and_limits(self, orchestra):
        with patch("llm_orchestra.cli.commands.run.bootstrap", return_value=orchestra):
            result = runner.invoke(
                app,
                [
                    "complete",
                    "gpt-4",
                    "Hello",
                    "--system",
                    "Be terse.",
                    "--max-tokens",
                    "50",
                    "--timeout-ms",
                    "2000",
                ],
            )

        assert result.exit_code == 0
        request = orchestra.complete.await_args.args[0]
        assert request.messages[0].content == "Be terse."
        assert request.max_tokens == 50
        assert request.timeout_ms == 2000
        assert request.fallback is None

    def test_stream(self, orchestra, make_stream):
        orchestra.stream = make_stream(
            [
                StreamChunk(content="Hel"),
                StreamChunk(content="lo"),
                StreamChunk(
                    finish_reason="stop",
                    meta=StreamMeta(
                        model="gpt-4",
                        provider="openai",
                        tokens=TokenUsage(input_tokens=3, output_tokens=2, total_tokens=5),
                        failover_attempts=1,
                    ),
                ),
            ]
        )

        with patch("llm_orchestra.cli.commands.run.bootstrap", return_value=orchestra):
            result = runner.invoke(app, ["complete", "gpt-4", "Hello", "--stream"])

        assert result.exit_code == 0
        assert "Hello\n" in result.output
        assert "[openai/gpt-4] tokens=3/2" in result.output
        assert "failover_attempts=1" in result.output
        orchestra.complete.assert_not_awaited()
        orchestra.shutdown.assert_awaited_once()

    def test_failure_is_handled(self, orchestra, caplog):
        orchestra.complete = AsyncMock(
            side_effect=AllProvidersFailedError(
                [Attempt("anthropic", "claude-3-opus", False, RuntimeError("down"), 5.0)]
            )
        )

        with patch("llm_orchestra.cli.commands.run.bootstrap", return_value=orchestra):
            with caplog.at_level(logging.ERROR):
                result = runner.invoke(app, ["complete", "claude-3-opus", "Hello"])

        assert result.exit_code == 0
        assert "ALL_PROVIDERS_FAILED" in caplog.text
        orchestra.shutdown.assert_awaited_once()


class TestProviders:
    def test_list(self, orchestra):
        with patch("llm_orchestra.cli.commands.provider.bootstrap", return_value=orchestra):
            result = runner.invoke(app, ["providers"])

        assert result.exit_code == 0
        assert "  - anthropic" in result.output
        assert "  - openai" in result.output

    def test_list_with_check(self, orchestra):
        with patch("llm_orchestra.cli.commands.provider.bootstrap", return_value=orchestra):
            result = runner.invoke(app, ["providers", "--check"])

        assert result.exit_code == 0
        assert "anthropic    available" in result.output
        assert "openai       unavailable" in result.output
        orchestra.shutdown.assert_awaited_once()

    def test_none_configured(self, orchestra):
        orchestra.get_providers = MagicMock(return_value=[])

        with patch("llm_orchestra.cli.commands.provider.bootstrap", return_value=orchestra):
            result = runner.invoke(app, ["providers"])

        assert "No providers configured" in result.output

    def test_models(self, orchestra):
        with patch("llm_orchestra.cli.commands.provider.bootstrap", return_value=orchestra):
            result = runner.invoke(app, ["models", "anthropic"])

        assert result.exit_code == 0
        assert "Provider: anthropic" in result.output
        assert "  - claude-3-haiku" in result.output
        orchestra.list_models.assert_awaited_once_with("anthropic")


class TestResolve:
    @pytest.mark.parametrize(
        "model,provider",
        [
            ("claude-3-opus", "anthropic"),
            ("gpt-4o-mini", "openai"),
            ("gemini-pro", "google"),
        ],
    )
    def test_known_models(self, model, provider):
        result = runner.invoke(app, ["resolve", model])

        assert result.exit_code == 0
        assert result.output.strip() == provider

    def test_unknown_model_exits_nonzero(self):
        result = runner.invoke(app, ["resolve", "llama-3"])

        assert result.exit_code == 1


class TestConfigShow:
    def test_masks_api_keys(self, tmp_path):
        config_file = tmp_path / "orchestra.yaml"
        config_file.write_text(
            "default_model: gpt-4o\nproviders:\n  openai:\n    api_key: sk-secret\n"
        )

        result = runner.invoke(app, ["config", "show", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "default_model: gpt-4o" in result.output
        assert "***" in result.output
        assert "sk-secret" not in result.output

    def test_missing_file_is_reported(self, tmp_path):
        result = runner.invoke(app, ["config", "show", "--config", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 0
        assert "CONFIG_ERROR: Config file not found" in result.output
