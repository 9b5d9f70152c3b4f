"""Span-based tracing of LLM calls."""

from .tracer import (
    EXPORT_BATCH_SIZE,
    EXPORT_INTERVAL_S,
    Span,
    SpanContext,
    SpanData,
    SpanEvent,
    Tracer,
    create_noop_tracer,
)

__all__ = [
    "EXPORT_BATCH_SIZE",
    "EXPORT_INTERVAL_S",
    "Span",
    "SpanContext",
    "SpanData",
    "SpanEvent",
    "Tracer",
    "create_noop_tracer",
]
