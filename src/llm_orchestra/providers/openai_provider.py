"""
OpenAI provider adapter (GPT models via the chat.completions API)
"""

import time
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from llm_orchestra.core.exceptions import (
    NetworkError,
    OrchestraError,
    ProviderError,
    RateLimitError,
)
from llm_orchestra.providers.base import BaseProvider
from llm_orchestra.providers.registry import register_provider
from llm_orchestra.types import (
    CompletionMeta,
    CompletionRequest,
    CompletionResponse,
    FinishReason,
    FunctionCall,
    Message,
    ModelCost,
    StreamChunk,
    StreamMeta,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from llm_orchestra.utils.logging import get_logger

logger = get_logger("providers.openai")

# Per 1K tokens
MODEL_PRICING: dict[str, ModelCost] = {
    "gpt-4-turbo": ModelCost(input_per_1k=0.01, output_per_1k=0.03),
    "gpt-4-turbo-preview": ModelCost(input_per_1k=0.01, output_per_1k=0.03),
    "gpt-4": ModelCost(input_per_1k=0.03, output_per_1k=0.06),
    "gpt-4-32k": ModelCost(input_per_1k=0.06, output_per_1k=0.12),
    "gpt-3.5-turbo": ModelCost(input_per_1k=0.0005, output_per_1k=0.0015),
    "gpt-3.5-turbo-16k": ModelCost(input_per_1k=0.003, output_per_1k=0.004),
    "gpt-4o": ModelCost(input_per_1k=0.005, output_per_1k=0.015),
    "gpt-4o-mini": ModelCost(input_per_1k=0.00015, output_per_1k=0.0006),
}
DEFAULT_PRICING = MODEL_PRICING["gpt-4-turbo"]

_FINISH_REASONS: set[str] = {"stop", "length", "tool_calls", "content_filter"}


@register_provider("openai")
class OpenAIProvider(BaseProvider):
    """Adapter for the OpenAI chat.completions API using the openai library.

    The SDK's own retries are disabled; retrying is the router's job.
    """

    vendor = "OpenAI"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        organization_id: str | None = None,
        api_key_env: str | None = "OPENAI_API_KEY",
    ):
        super().__init__(api_key, base_url, organization_id, api_key_env)
        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            organization=self.organization_id,
            max_retries=0,
        )

    async def aclose(self) -> None:
        await self.client.close()

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        start = time.monotonic()
        span_id = self.generate_span_id()
        model = self.resolve_model(request.model)

        try:
            response = await self.client.chat.completions.create(
                **self._build_payload(request, model)
            )
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e

        choice = response.choices[0]
        usage = TokenUsage(
            input_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(response.usage, "total_tokens", 0) or 0,
        )

        tool_calls = None
        if choice.message.tool_calls:
            tool_calls = [
                ToolCall(
                    id=tc.id,
                    function=FunctionCall(
                        name=tc.function.name, arguments=tc.function.arguments
                    ),
                )
                for tc in choice.message.tool_calls
            ]

        return CompletionResponse(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            finish_reason=self._map_finish_reason(choice.finish_reason),
            meta=CompletionMeta(
                latency_ms=(time.monotonic() - start) * 1000,
                tokens=usage,
                cost=self.calculate_cost(model, usage),
                span_id=span_id,
                model=model,
                provider=self.name,
            ),
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion.

        Usage arrives in a trailing chunk after the one carrying the finish
        reason, so the final metadata chunk is emitted once the stream ends.
        """
        start = time.monotonic()
        model = self.resolve_model(request.model)
        usage: TokenUsage | None = None
        finish_reason: str | None = None

        try:
            stream = await self.client.chat.completions.create(
                **self._build_payload(request, model),
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                if chunk.usage:
                    usage = TokenUsage(
                        input_tokens=chunk.usage.prompt_tokens,
                        output_tokens=chunk.usage.completion_tokens,
                        total_tokens=chunk.usage.total_tokens,
                    )

                if not chunk.choices:
                    continue
                choice = chunk.choices[0]

                if choice.delta and choice.delta.content:
                    yield StreamChunk(content=choice.delta.content)

                if choice.delta and choice.delta.tool_calls:
                    yield StreamChunk(
                        tool_calls=[
                            self._tool_call_fragment(tc) for tc in choice.delta.tool_calls
                        ]
                    )

                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e

        if finish_reason:
            yield StreamChunk(
                finish_reason=self._map_finish_reason(finish_reason),
                meta=StreamMeta(
                    latency_ms=(time.monotonic() - start) * 1000,
                    tokens=usage,
                    cost=self.calculate_cost(model, usage) if usage else None,
                    model=model,
                    provider=self.name,
                ),
            )

    async def list_models(self) -> list[str]:
        try:
            page = await self.client.models.list()
        except openai.OpenAIError as e:
            raise self._translate_error(e) from e
        return [model.id for model in page.data if model.id.startswith("gpt")]

    def get_model_cost(self, model: str) -> ModelCost:
        """Best-matching price entry; unknown models are priced like GPT-4 Turbo.

        Dated snapshots such as ``gpt-4o-2024-08-06`` match the longest known
        name they contain, so they aren't priced as plain ``gpt-4``.
        """
        if model in MODEL_PRICING:
            return MODEL_PRICING[model]

        contained = [key for key in MODEL_PRICING if key in model]
        if contained:
            return MODEL_PRICING[max(contained, key=len)]

        for key, pricing in MODEL_PRICING.items():
            if model in key:
                return pricing
        return DEFAULT_PRICING

    def resolve_model(self, model: str) -> str:
        return model

    def _build_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [self._convert_message(m) for m in request.messages],
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.stop:
            payload["stop"] = request.stop
        if request.tools:
            payload["tools"] = [self._convert_tool(t) for t in request.tools]
        if request.tool_choice:
            payload["tool_choice"] = request.tool_choice
        return payload

    @staticmethod
    def _convert_message(message: Message) -> dict[str, Any]:
        if message.role == "tool" and message.tool_call_id:
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content,
            }
        converted = {"role": message.role, "content": message.content}
        if message.name:
            converted["name"] = message.name
        return converted

    @staticmethod
    def _convert_tool(tool: ToolDefinition) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.function.name,
                "description": tool.function.description,
                "parameters": tool.function.parameters,
            },
        }

    @staticmethod
    def _tool_call_fragment(tool_call) -> dict[str, Any]:
        fragment: dict[str, Any] = {"index": tool_call.index, "type": "function"}
        if tool_call.id:
            fragment["id"] = tool_call.id
        if tool_call.function:
            fragment["function"] = {
                "name": tool_call.function.name or "",
                "arguments": tool_call.function.arguments or "",
            }
        return fragment

    @staticmethod
    def _map_finish_reason(reason: str | None) -> FinishReason:
        return reason if reason in _FINISH_REASONS else "stop"

    def _translate_error(self, e: Exception) -> OrchestraError:
        """Map an SDK error onto the orchestration error taxonomy."""
        logger.debug(f"Error type: {type(e).__module__}.{type(e).__name__}")

        if isinstance(e, openai.APIConnectionError):
            return NetworkError(
                f"Connection to {self.vendor} failed: {e}", provider=self.name, cause=e
            )

        status_code = getattr(e, "status_code", None)
        if status_code == 429:
            return RateLimitError(
                provider=self.name,
                retry_after_ms=self._retry_after_ms(e),
                cause=e,
            )
        return ProviderError(
            f"{self.vendor} API error: {e}", provider=self.name, status_code=status_code, cause=e
        )

    @staticmethod
    def _retry_after_ms(e: Exception) -> float | None:
        response = getattr(e, "response", None)
        headers = getattr(response, "headers", None) or {}
        value = headers.get("retry-after")
        try:
            return float(value) * 1000 if value is not None else None
        except ValueError:
            return None
