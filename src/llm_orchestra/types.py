"""
Data model shared by providers, the router, the tracer, and the façade
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MessageRole = Literal["system", "user", "assistant", "tool"]
FinishReason = Literal["stop", "length", "tool_calls", "content_filter"]


class Message(BaseModel):
    """A single chat message."""

    role: MessageRole
    content: str
    name: str | None = None
    tool_call_id: str | None = None


class FunctionCall(BaseModel):
    name: str
    arguments: str = "{}"


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class FunctionDefinition(BaseModel):
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    """A tool the model may call."""

    type: Literal["function"] = "function"
    function: FunctionDefinition


class TokenUsage(BaseModel):
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class ModelCost(BaseModel):
    """Per-1K-token pricing for a model."""

    input_per_1k: float = Field(ge=0.0)
    output_per_1k: float = Field(ge=0.0)


class CompletionRequest(BaseModel):
    """A logical completion request.

    Requests are immutable; the router derives one copy per chain entry with
    ``model`` overridden via ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    model: str = Field(min_length=1, description="Primary model name")
    messages: list[Message] = Field(description="Ordered conversation")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    top_p: float | None = Field(default=None, gt=0.0, le=1.0)
    stop: list[str] | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: str | dict[str, Any] | None = None

    fallback: list[str] | None = Field(
        default=None, description="Fallback model names, tried in order"
    )
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None
    timeout_ms: float | None = Field(
        default=None, gt=0, description="Per-attempt timeout overriding the router default"
    )

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v):
        if not v:
            raise ValueError("messages cannot be empty")
        return v

    def for_model(self, model: str) -> "CompletionRequest":
        """Return a copy of this request targeting ``model``."""
        return self.model_copy(update={"model": model})


class CompletionMeta(BaseModel):
    latency_ms: float = 0.0
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    cost: float = 0.0
    trace_id: str = ""
    span_id: str = ""
    model: str
    provider: str
    cached: bool = False
    failover_attempts: int = 0


class CompletionResponse(BaseModel):
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    finish_reason: FinishReason = "stop"
    meta: CompletionMeta


class StreamMeta(BaseModel):
    """Partial completion metadata carried by streaming chunks."""

    latency_ms: float | None = None
    tokens: TokenUsage | None = None
    cost: float | None = None
    trace_id: str | None = None
    span_id: str | None = None
    model: str | None = None
    provider: str | None = None
    cached: bool | None = None
    failover_attempts: int | None = None


class StreamChunk(BaseModel):
    """One increment of a streaming completion.

    ``tool_calls`` holds partial tool-call fragments exactly as the provider
    delivered them; the final chunk carries ``finish_reason`` and ``meta``.
    """

    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None
    finish_reason: str | None = None
    meta: StreamMeta | None = None
