"""Tests for the OpenAI adapter with a mocked SDK client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from llm_orchestra.core.exceptions import NetworkError, ProviderError, RateLimitError
from llm_orchestra.providers.openai_provider import DEFAULT_PRICING, OpenAIProvider
from llm_orchestra.types import (
    CompletionRequest,
    FunctionDefinition,
    Message,
    ToolDefinition,
)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _request(**overrides) -> CompletionRequest:
    data = {
        "model": "gpt-4o",
        "messages": [
            Message(role="system", content="Be brief"),
            Message(role="user", content="Hi"),
        ],
    }
    data.update(overrides)
    return CompletionRequest(**data)


def _completion(content="Hi there", finish_reason="stop", tool_calls=None):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ],
        usage=SimpleNamespace(prompt_tokens=100, completion_tokens=50, total_tokens=150),
    )


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None, empty=False):
    choices = (
        []
        if empty
        else [
            SimpleNamespace(
                delta=SimpleNamespace(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ]
    )
    return SimpleNamespace(choices=choices, usage=usage)


class AsyncChunks:
    def __init__(self, chunks, error=None):
        self._chunks = list(chunks)
        self._error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        raise StopAsyncIteration


@pytest.fixture
def provider():
    provider = OpenAIProvider(api_key="sk-test")
    provider.client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock())),
        models=SimpleNamespace(list=AsyncMock()),
    )
    return provider


class TestComplete:
    async def test_maps_response(self, provider):
        provider.client.chat.completions.create.return_value = _completion()

        response = await provider.complete(_request(max_tokens=64, temperature=0.2))

        assert response.content == "Hi there"
        assert response.finish_reason == "stop"
        assert response.meta.provider == "openai"
        assert response.meta.model == "gpt-4o"
        assert response.meta.tokens.total_tokens == 150
        assert response.meta.cost == round(0.1 * 0.005 + 0.05 * 0.015, 6)
        assert response.meta.span_id.startswith("span_")

        payload = provider.client.chat.completions.create.await_args.kwargs
        assert payload["model"] == "gpt-4o"
        assert payload["max_tokens"] == 64
        assert payload["temperature"] == 0.2
        assert payload["messages"][0] == {"role": "system", "content": "Be brief"}
        assert "tools" not in payload

    async def test_tool_calls(self, provider):
        provider.client.chat.completions.create.return_value = _completion(
            content=None,
            finish_reason="tool_calls",
            tool_calls=[
                SimpleNamespace(
                    id="call_1",
                    function=SimpleNamespace(name="get_weather", arguments='{"city": "Paris"}'),
                )
            ],
        )
        tools = [
            ToolDefinition(
                function=FunctionDefinition(
                    name="get_weather", parameters={"type": "object"}
                )
            )
        ]

        response = await provider.complete(_request(tools=tools, tool_choice="auto"))

        assert response.content == ""
        assert response.finish_reason == "tool_calls"
        assert response.tool_calls[0].function.arguments == '{"city": "Paris"}'
        payload = provider.client.chat.completions.create.await_args.kwargs
        assert payload["tools"][0]["function"]["name"] == "get_weather"
        assert payload["tool_choice"] == "auto"

    async def test_tool_messages_keep_call_id(self, provider):
        provider.client.chat.completions.create.return_value = _completion()

        await provider.complete(
            _request(messages=[Message(role="tool", content="sunny", tool_call_id="call_1")])
        )

        payload = provider.client.chat.completions.create.await_args.kwargs
        assert payload["messages"] == [
            {"role": "tool", "tool_call_id": "call_1", "content": "sunny"}
        ]

    async def test_unknown_finish_reason_maps_to_stop(self, provider):
        provider.client.chat.completions.create.return_value = _completion(
            finish_reason="function_call"
        )

        response = await provider.complete(_request())

        assert response.finish_reason == "stop"


class TestErrors:
    async def test_rate_limit(self, provider):
        response = httpx.Response(
            429,
            headers={"retry-after": "2"},
            request=httpx.Request("POST", OPENAI_URL),
        )
        provider.client.chat.completions.create.side_effect = openai.RateLimitError(
            "slow down", response=response, body=None
        )

        with pytest.raises(RateLimitError) as exc_info:
            await provider.complete(_request())

        assert exc_info.value.retry_after_ms == 2000
        assert exc_info.value.provider == "openai"

    async def test_status_error_keeps_status_code(self, provider):
        response = httpx.Response(503, request=httpx.Request("POST", OPENAI_URL))
        provider.client.chat.completions.create.side_effect = openai.InternalServerError(
            "unavailable", response=response, body=None
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.complete(_request())

        assert exc_info.value.status == 503

    async def test_connection_error(self, provider):
        provider.client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", OPENAI_URL)
        )

        with pytest.raises(NetworkError):
            await provider.complete(_request())


class TestStream:
    async def test_streams_content_then_final_meta(self, provider):
        provider.client.chat.completions.create.return_value = AsyncChunks(
            [
                _chunk(content="Hel"),
                _chunk(content="lo"),
                _chunk(finish_reason="stop"),
                _chunk(
                    empty=True,
                    usage=SimpleNamespace(
                        prompt_tokens=10, completion_tokens=2, total_tokens=12
                    ),
                ),
            ]
        )

        chunks = [chunk async for chunk in provider.stream(_request())]

        assert [c.content for c in chunks[:2]] == ["Hel", "lo"]
        final = chunks[-1]
        assert final.finish_reason == "stop"
        assert final.meta.tokens.total_tokens == 12
        assert final.meta.provider == "openai"
        assert final.meta.cost is not None
        kwargs = provider.client.chat.completions.create.await_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["stream_options"] == {"include_usage": True}

    async def test_tool_call_fragments(self, provider):
        provider.client.chat.completions.create.return_value = AsyncChunks(
            [
                _chunk(
                    tool_calls=[
                        SimpleNamespace(
                            index=0,
                            id="call_1",
                            function=SimpleNamespace(name="lookup", arguments=""),
                        )
                    ]
                ),
                _chunk(
                    tool_calls=[
                        SimpleNamespace(
                            index=0,
                            id=None,
                            function=SimpleNamespace(name=None, arguments='{"q": 1}'),
                        )
                    ]
                ),
                _chunk(finish_reason="tool_calls"),
            ]
        )

        chunks = [chunk async for chunk in provider.stream(_request())]

        assert chunks[0].tool_calls == [
            {
                "index": 0,
                "type": "function",
                "id": "call_1",
                "function": {"name": "lookup", "arguments": ""},
            }
        ]
        assert "id" not in chunks[1].tool_calls[0]
        assert chunks[-1].finish_reason == "tool_calls"
        assert chunks[-1].meta.tokens is None

    async def test_error_mid_stream_is_translated(self, provider):
        provider.client.chat.completions.create.return_value = AsyncChunks(
            [_chunk(content="partial")],
            error=openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL)),
        )

        received = []
        with pytest.raises(NetworkError):
            async for chunk in provider.stream(_request()):
                received.append(chunk.content)

        assert received == ["partial"]


class TestModels:
    async def test_list_models_filters_gpt(self, provider):
        provider.client.models.list.return_value = SimpleNamespace(
            data=[
                SimpleNamespace(id="gpt-4o"),
                SimpleNamespace(id="text-embedding-3-small"),
                SimpleNamespace(id="gpt-3.5-turbo"),
            ]
        )

        assert await provider.list_models() == ["gpt-4o", "gpt-3.5-turbo"]

    async def test_is_available_false_on_error(self, provider):
        provider.client.models.list.side_effect = openai.APIConnectionError(
            request=httpx.Request("GET", "https://api.openai.com/v1/models")
        )

        assert await provider.is_available() is False

    def test_pricing_substring_match_and_default(self, provider):
        assert provider.get_model_cost("gpt-4o-2024-08-06").input_per_1k == 0.005
        assert provider.get_model_cost("davinci-002") == DEFAULT_PRICING
