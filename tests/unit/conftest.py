"""Shared factories for unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from llm_orchestra.providers.base import BaseProvider
from llm_orchestra.types import (
    CompletionMeta,
    CompletionRequest,
    CompletionResponse,
    Message,
    ModelCost,
    StreamChunk,
    StreamMeta,
    TokenUsage,
)


def build_response(
    provider: str = "anthropic",
    model: str = "claude-3-opus",
    content: str = "Hello!",
    input_tokens: int = 10,
    output_tokens: int = 20,
    cost: float = 0.001,
    latency_ms: float = 100.0,
) -> CompletionResponse:
    return CompletionResponse(
        content=content,
        meta=CompletionMeta(
            latency_ms=latency_ms,
            tokens=TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            cost=cost,
            span_id="span_provider",
            model=model,
            provider=provider,
        ),
    )


def build_stream(chunks: list[StreamChunk], error: Exception | None = None):
    """Factory for a ``stream`` side effect yielding ``chunks`` then raising ``error``."""

    def stream(request):
        async def generate():
            for chunk in chunks:
                yield chunk.model_copy(deep=True)
            if error is not None:
                raise error

        return generate()

    return stream


def build_provider(
    name: str = "anthropic",
    response: CompletionResponse | None = None,
    models: list[str] | None = None,
) -> MagicMock:
    provider = MagicMock(spec=BaseProvider)
    provider.name = name
    template = response or build_response(provider=name)
    # a fresh response per call; callers stamp trace data onto meta
    provider.complete = AsyncMock(side_effect=lambda request: template.model_copy(deep=True))
    provider.stream = MagicMock(
        side_effect=build_stream(
            [
                StreamChunk(content="Hello"),
                StreamChunk(content=" world"),
                StreamChunk(
                    finish_reason="stop",
                    meta=StreamMeta(
                        latency_ms=50.0,
                        tokens=TokenUsage(input_tokens=5, output_tokens=2, total_tokens=7),
                        cost=0.0005,
                        model="claude-3-opus",
                        provider=name,
                    ),
                ),
            ]
        )
    )
    provider.list_models = AsyncMock(return_value=models or ["claude-3-opus"])
    provider.is_available = AsyncMock(return_value=True)
    provider.get_model_cost = MagicMock(
        return_value=ModelCost(input_per_1k=0.015, output_per_1k=0.075)
    )
    return provider


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def make_stream():
    return build_stream


@pytest.fixture
def make_provider():
    return build_provider


@pytest.fixture
def basic_request() -> CompletionRequest:
    return CompletionRequest(
        model="claude-3-opus",
        messages=[Message(role="user", content="Hello")],
    )
