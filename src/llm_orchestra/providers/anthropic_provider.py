"""
Anthropic provider adapter (Claude models via the Messages API)
"""

import json
import time
from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

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

logger = get_logger("providers.anthropic")

DEFAULT_MAX_TOKENS = 4096

MODEL_ALIASES: dict[str, str] = {
    "claude-3-opus": "claude-3-opus-20240229",
    "claude-3-sonnet": "claude-3-sonnet-20240229",
    "claude-3-haiku": "claude-3-haiku-20240307",
    "claude-3.5-sonnet": "claude-3-5-sonnet-20241022",
    "claude-3.5-haiku": "claude-3-5-haiku-20241022",
}

# Per 1K tokens, keyed by resolved model name
MODEL_PRICING: dict[str, ModelCost] = {
    "claude-3-opus-20240229": ModelCost(input_per_1k=0.015, output_per_1k=0.075),
    "claude-3-sonnet-20240229": ModelCost(input_per_1k=0.003, output_per_1k=0.015),
    "claude-3-haiku-20240307": ModelCost(input_per_1k=0.00025, output_per_1k=0.00125),
    "claude-3-5-sonnet-20241022": ModelCost(input_per_1k=0.003, output_per_1k=0.015),
    "claude-3-5-haiku-20241022": ModelCost(input_per_1k=0.001, output_per_1k=0.005),
}
DEFAULT_PRICING = ModelCost(input_per_1k=0.003, output_per_1k=0.015)

_STOP_REASONS: dict[str, FinishReason] = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}

# Error events inside a 200 stream carry only a type; map it to the HTTP status
_ERROR_TYPE_STATUS: dict[str, int] = {
    "rate_limit_error": 429,
    "api_error": 500,
    "overloaded_error": 529,
}


@register_provider("anthropic")
class AnthropicProvider(BaseProvider):
    """Adapter for Anthropic's Messages API using the anthropic library.

    The SDK's own retries are disabled; retrying is the router's job.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        organization_id: str | None = None,
        api_key_env: str | None = "ANTHROPIC_API_KEY",
    ):
        super().__init__(api_key, base_url, organization_id, api_key_env)
        self.client = AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            max_retries=0,
        )

    async def aclose(self) -> None:
        await self.client.close()

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        start = time.monotonic()
        span_id = self.generate_span_id()
        model = self.resolve_model(request.model)

        try:
            message = await self.client.messages.create(**self._build_payload(request, model))
        except anthropic.AnthropicError as e:
            raise self._translate_error(e) from e

        usage = TokenUsage(
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            total_tokens=message.usage.input_tokens + message.usage.output_tokens,
        )

        content = ""
        tool_calls: list[ToolCall] = []
        for block in message.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        function=FunctionCall(
                            name=block.name, arguments=json.dumps(block.input or {})
                        ),
                    )
                )

        return CompletionResponse(
            content=content,
            tool_calls=tool_calls or None,
            finish_reason=self._map_stop_reason(message.stop_reason),
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

        Tool-use input arrives as partial JSON deltas; each tool call is
        emitted whole when its content block stops.
        """
        start = time.monotonic()
        model = self.resolve_model(request.model)

        input_tokens = 0
        output_tokens = 0
        tool_uses: dict[int, dict[str, str]] = {}

        try:
            events = await self.client.messages.create(
                **self._build_payload(request, model), stream=True
            )
            async for event in events:
                if event.type == "message_start":
                    usage = getattr(event.message, "usage", None)
                    input_tokens = getattr(usage, "input_tokens", 0) or 0

                elif event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "tool_use":
                        tool_uses[event.index] = {
                            "id": block.id,
                            "name": block.name,
                            "base_json": json.dumps(block.input)
                            if getattr(block, "input", None)
                            else "",
                            "delta_json": "",
                        }

                elif event.type == "content_block_delta":
                    delta = event.delta
                    if delta.type == "input_json_delta" and event.index in tool_uses:
                        tool_uses[event.index]["delta_json"] += delta.partial_json
                    elif delta.type == "text_delta":
                        yield StreamChunk(content=delta.text)

                elif event.type == "content_block_stop":
                    tool_use = tool_uses.pop(event.index, None)
                    if tool_use:
                        yield StreamChunk(
                            tool_calls=[
                                {
                                    "id": tool_use["id"],
                                    "type": "function",
                                    "function": {
                                        "name": tool_use["name"],
                                        "arguments": tool_use["delta_json"]
                                        or tool_use["base_json"]
                                        or "{}",
                                    },
                                }
                            ]
                        )

                elif event.type == "message_delta":
                    usage = getattr(event, "usage", None)
                    if usage is not None:
                        output_tokens = getattr(usage, "output_tokens", output_tokens)
                    stop_reason = getattr(event.delta, "stop_reason", None)
                    if stop_reason:
                        tokens = TokenUsage(
                            input_tokens=input_tokens,
                            output_tokens=output_tokens,
                            total_tokens=input_tokens + output_tokens,
                        )
                        yield StreamChunk(
                            finish_reason=self._map_stop_reason(stop_reason),
                            meta=StreamMeta(
                                latency_ms=(time.monotonic() - start) * 1000,
                                tokens=tokens,
                                cost=self.calculate_cost(model, tokens),
                                model=model,
                                provider=self.name,
                            ),
                        )
        except anthropic.AnthropicError as e:
            raise self._translate_error(e) from e

    async def list_models(self) -> list[str]:
        return list(MODEL_PRICING)

    def get_model_cost(self, model: str) -> ModelCost:
        return MODEL_PRICING.get(self.resolve_model(model), DEFAULT_PRICING)

    @staticmethod
    def resolve_model(model: str) -> str:
        return MODEL_ALIASES.get(model, model)

    def _build_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        system_prompt, messages = self._convert_messages(request.messages)
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": messages,
        }
        if system_prompt:
            payload["system"] = system_prompt
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.top_p is not None:
            payload["top_p"] = request.top_p
        if request.stop:
            payload["stop_sequences"] = request.stop
        if request.tools:
            payload["tools"] = [self._convert_tool(t) for t in request.tools]
        return payload

    @staticmethod
    def _convert_messages(
        messages: list[Message],
    ) -> tuple[str | None, list[dict[str, Any]]]:
        """Fold system messages into one prompt and map tool results to user turns."""
        system_prompt: str | None = None
        converted: list[dict[str, Any]] = []

        for message in messages:
            if message.role == "system":
                system_prompt = (system_prompt or "") + message.content
            elif message.role in ("user", "assistant"):
                converted.append({"role": message.role, "content": message.content})
            elif message.role == "tool" and message.tool_call_id:
                converted.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": message.tool_call_id,
                                "content": message.content,
                            }
                        ],
                    }
                )

        return system_prompt, converted

    @staticmethod
    def _convert_tool(tool: ToolDefinition) -> dict[str, Any]:
        return {
            "name": tool.function.name,
            "description": tool.function.description,
            "input_schema": tool.function.parameters,
        }

    @staticmethod
    def _map_stop_reason(reason: str | None) -> FinishReason:
        return _STOP_REASONS.get(reason or "", "stop")

    def _translate_error(self, e: Exception) -> OrchestraError:
        """Map an SDK error onto the orchestration error taxonomy."""
        logger.debug(f"Error type: {type(e).__module__}.{type(e).__name__}")

        if isinstance(e, anthropic.APIConnectionError):
            return NetworkError(
                f"Connection to Anthropic failed: {e}", provider=self.name, cause=e
            )

        status_code = getattr(e, "status_code", None)
        error_type = self._error_type(getattr(e, "body", None))
        if status_code is None or status_code < 400:
            # error event received mid-stream on a 200 response
            status_code = _ERROR_TYPE_STATUS.get(error_type, status_code)

        if status_code == 429:
            return RateLimitError(
                provider=self.name,
                retry_after_ms=self._retry_after_ms(e),
                cause=e,
            )
        return ProviderError(
            f"Anthropic API error: {e}", provider=self.name, status_code=status_code, cause=e
        )

    @staticmethod
    def _error_type(body: Any) -> str | None:
        if not isinstance(body, dict):
            return None
        error = body.get("error", body)
        return error.get("type") if isinstance(error, dict) else None

    @staticmethod
    def _retry_after_ms(e: Exception) -> float | None:
        response = getattr(e, "response", None)
        headers = getattr(response, "headers", None) or {}
        value = headers.get("retry-after")
        try:
            return float(value) * 1000 if value is not None else None
        except ValueError:
            return None
