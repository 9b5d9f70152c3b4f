"""LLM Orchestra - failover routing and tracing for multi-provider LLM calls."""

__version__ = "0.1.0"

# Core modules
from . import config, core, providers, routing, tracing, utils

# Main entry point
from .orchestra import Orchestra, OrchestraStats
from .routing import Attempt, RetryConfig, RouteResult, Router
from .tracing import Span, SpanContext, SpanData, Tracer
from .types import (
    CompletionMeta,
    CompletionRequest,
    CompletionResponse,
    Message,
    StreamChunk,
    TokenUsage,
)

__all__ = [
    "Attempt",
    "CompletionMeta",
    "CompletionRequest",
    "CompletionResponse",
    "Message",
    "Orchestra",
    "OrchestraStats",
    "RetryConfig",
    "RouteResult",
    "Router",
    "Span",
    "SpanContext",
    "SpanData",
    "StreamChunk",
    "TokenUsage",
    "Tracer",
    "config",
    "core",
    "providers",
    "routing",
    "tracing",
    "utils",
]
