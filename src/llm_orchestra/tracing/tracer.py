"""
Distributed tracing for LLM calls.

Spans form a tree per logical operation (shared trace ID, parent/child span
IDs). Finished spans are sampled, kept in memory and queued for export; the
queue is POSTed as JSON to the configured endpoint periodically, when it
reaches ``EXPORT_BATCH_SIZE`` entries, and on shutdown.

The "current span" used for implicit parenting is tracked per asyncio task
through a ``ContextVar``, so concurrent ``trace()`` calls on one tracer never
adopt each other's spans as parents. Pass ``parent_context`` or use
``Span.start_child`` to link spans explicitly.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import random
import time
import traceback
import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import Any, Literal, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from llm_orchestra.config.schemas import TracingConfig
from llm_orchestra.types import TokenUsage
from llm_orchestra.utils.logging import get_logger

logger = get_logger("tracing.tracer")

EXPORT_INTERVAL_S = 5.0
EXPORT_BATCH_SIZE = 100
EXPORT_TIMEOUT_S = 10.0

SpanKind = Literal["client", "server", "internal"]
SpanStatus = Literal["unset", "ok", "error"]

T = TypeVar("T")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if not value:
            return "".join(reversed(digits))


def _generate_id() -> str:
    return f"{_base36(_now_ms())}_{uuid.uuid4().hex[:9]}"


class _WireModel(BaseModel):
    """Serialized in camelCase on the export wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SpanContext(_WireModel):
    trace_id: str
    span_id: str
    parent_span_id: str | None = None


class SpanEvent(_WireModel):
    name: str
    timestamp: int
    attributes: dict[str, Any] | None = None


class SpanData(_WireModel):
    context: SpanContext
    name: str
    kind: SpanKind = "client"
    start_time: int
    end_time: int | None = None
    status: SpanStatus = "unset"
    attributes: dict[str, Any] = Field(default_factory=dict)
    events: list[SpanEvent] = Field(default_factory=list)
    links: list[SpanContext] | None = None


class Span:
    """A single traced unit of work.

    Mutators return the span so calls can be chained. Once ``end()`` has run,
    the recorded data is a frozen copy; later mutations don't reach it.
    """

    def __init__(
        self,
        tracer: Tracer,
        name: str,
        parent_context: SpanContext | None = None,
        attributes: dict[str, Any] | None = None,
        trace_id: str | None = None,
        kind: SpanKind = "client",
    ):
        self._tracer = tracer
        self._ended = False
        self.children: list[Span] = []
        self._data = SpanData(
            context=SpanContext(
                trace_id=trace_id
                or (parent_context.trace_id if parent_context else _generate_id()),
                span_id=_generate_id(),
                parent_span_id=parent_context.span_id if parent_context else None,
            ),
            name=name,
            kind=kind,
            start_time=_now_ms(),
            attributes=dict(attributes or {}),
        )

    @property
    def context(self) -> SpanContext:
        """Copy of this span's context, for parenting spans elsewhere."""
        return self._data.context.model_copy()

    @property
    def name(self) -> str:
        return self._data.name

    @property
    def status(self) -> SpanStatus:
        return self._data.status

    @property
    def is_ended(self) -> bool:
        return self._ended

    def set_attribute(self, key: str, value: Any) -> Span:
        self._data.attributes[key] = value
        return self

    def set_attributes(self, attributes: dict[str, Any]) -> Span:
        self._data.attributes.update(attributes)
        return self

    def add_event(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        self._data.events.append(
            SpanEvent(name=name, timestamp=_now_ms(), attributes=attributes)
        )
        return self

    def set_status(self, status: Literal["ok", "error"], message: str | None = None) -> Span:
        self._data.status = status
        if message:
            self._data.attributes["error.message"] = message
        return self

    def record_exception(self, error: BaseException) -> Span:
        message = str(error)
        self.set_status("error", message)
        self.add_event(
            "exception",
            {
                "exception.type": type(error).__name__,
                "exception.message": message,
                "exception.stacktrace": "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            },
        )
        return self

    def start_child(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        """Start a span parented to this one. It does not become the current span."""
        child = Span(self._tracer, name, self._data.context, attributes)
        self.children.append(child)
        return child

    def end(self) -> None:
        """Finish the span and hand a frozen copy to the tracer. Idempotent."""
        if self._ended:
            return
        self._ended = True
        self._data.end_time = max(_now_ms(), self._data.start_time)
        if self._data.status == "unset":
            self._data.status = "ok"
        self._tracer.record_span(self._data.model_copy(deep=True))
        self._tracer._release(self)

    @property
    def duration_ms(self) -> int:
        end_time = self._data.end_time if self._data.end_time is not None else _now_ms()
        return end_time - self._data.start_time

    def get_data(self) -> SpanData:
        return self._data.model_copy(deep=True)

    def __enter__(self) -> Span:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            self.record_exception(exc)
        self.end()
        return False

    async def __aenter__(self) -> Span:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return self.__exit__(exc_type, exc, tb)

    def __repr__(self) -> str:
        ctx = self._data.context
        return f"Span(name={self.name!r}, trace_id={ctx.trace_id!r}, span_id={ctx.span_id!r})"


class Tracer:
    """Creates spans, samples and records finished ones, and batches their export."""

    def __init__(
        self,
        config: TracingConfig | dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if isinstance(config, TracingConfig):
            self.config = config
        else:
            self.config = TracingConfig.model_validate(config or {})

        self._transport = transport
        self._spans: list[SpanData] = []
        self._export_queue: list[SpanData] = []
        self._current: ContextVar[tuple[Span, ...]] = ContextVar(
            f"llm_orchestra_current_span_{id(self)}", default=()
        )
        self._export_task: asyncio.Task | None = None
        self._pending_flushes: set[asyncio.Task] = set()
        self._closed = False

        self._ensure_export_task()

    @property
    def periodic_export_enabled(self) -> bool:
        return self.config.enabled and bool(self.config.export_endpoint)

    @property
    def current_span(self) -> Span | None:
        stack = self._current.get()
        return stack[-1] if stack else None

    @property
    def pending_exports(self) -> int:
        return len(self._export_queue)

    def start_span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
        *,
        parent_context: SpanContext | None = None,
        trace_id: str | None = None,
        kind: SpanKind = "client",
        make_current: bool = True,
    ) -> Span:
        """Start a span and make it the current span of the calling task.

        An explicit ``trace_id`` starts an independent tree: the current span
        is not used as an implicit parent. Without either option the span
        becomes a child of the current span, or the root of a new trace.

        With ``make_current=False`` the span never becomes current. Spans
        that outlive the caller's frame, such as one held by an async
        generator, must be started this way.
        """
        if parent_context is None and trace_id is None:
            current = self.current_span
            parent_context = current.context if current else None

        span = Span(self, name, parent_context, attributes, trace_id=trace_id, kind=kind)
        if make_current:
            self._current.set((*self._current.get(), span))
        self._ensure_export_task()
        return span

    async def trace(
        self,
        name: str,
        fn: Callable[[Span], Awaitable[T] | T],
        attributes: dict[str, Any] | None = None,
        *,
        parent_context: SpanContext | None = None,
        trace_id: str | None = None,
    ) -> T:
        """Run ``fn`` inside a span.

        The span ends with status ok on return, or error (plus an
        ``exception`` event) when ``fn`` raises; the error is re-raised as is.
        """
        span = self.start_span(
            name, attributes, parent_context=parent_context, trace_id=trace_id
        )
        try:
            result = fn(span)
            if inspect.isawaitable(result):
                result = await result
        except BaseException as error:
            span.record_exception(error)
            raise
        else:
            span.set_status("ok")
            return result
        finally:
            span.end()

    def record_llm_call(
        self,
        span: Span,
        *,
        provider: str,
        model: str,
        tokens: TokenUsage | None = None,
        cost: float | None = None,
        latency_ms: float | None = None,
        cached: bool | None = None,
    ) -> None:
        """Annotate ``span`` with the standard ``llm.*`` attributes.

        Attributes whose value is unknown are left unset.
        """
        attributes = {
            "llm.provider": provider,
            "llm.model": model,
            "llm.tokens.input": tokens.input_tokens if tokens else None,
            "llm.tokens.output": tokens.output_tokens if tokens else None,
            "llm.tokens.total": tokens.total_tokens if tokens else None,
            "llm.cost": cost,
            "llm.latency_ms": latency_ms,
            "llm.cached": cached,
        }
        span.set_attributes({k: v for k, v in attributes.items() if v is not None})

    def record_span(self, data: SpanData) -> None:
        """Keep a finished span if it is sampled; flush once the queue is full."""
        if not self._should_sample():
            return

        self._spans.append(data)
        self._export_queue.append(data)

        if len(self._export_queue) >= EXPORT_BATCH_SIZE:
            self._schedule_flush()

    async def flush(self) -> None:
        """Export queued spans.

        Transport errors and 5xx responses put the batch back at the queue
        front for the next flush. A 4xx response means the collector rejected
        the batch; it is logged and dropped.
        """
        endpoint = self.config.export_endpoint
        if not endpoint or not self._export_queue:
            return

        batch = self._export_queue
        self._export_queue = []
        body = json.dumps(
            {"spans": [span.model_dump(by_alias=True, exclude_none=True) for span in batch]},
            default=str,
        )

        try:
            async with httpx.AsyncClient(
                timeout=EXPORT_TIMEOUT_S, transport=self._transport
            ) as client:
                response = await client.post(
                    endpoint,
                    content=body,
                    headers={"Content-Type": "application/json"},
                )
        except Exception as e:
            self._requeue(batch, f"Failed to export spans: {e}")
            return

        if response.is_server_error:
            self._requeue(
                batch, f"Span collector unavailable (HTTP {response.status_code})"
            )
            return
        if response.is_client_error:
            logger.error(
                f"Span collector rejected batch (HTTP {response.status_code}), dropping it",
                extra={"dropped": len(batch)},
            )
            return

        logger.debug(f"Exported {len(batch)} spans to {endpoint}")

    def get_spans(self) -> list[SpanData]:
        return list(self._spans)

    def clear_spans(self) -> None:
        self._spans = []

    def generate_trace_id(self) -> str:
        return f"trace_{_generate_id()}"

    async def shutdown(self) -> None:
        """Stop periodic export and flush whatever is still queued."""
        self._closed = True
        task, self._export_task = self._export_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._pending_flushes:
            await asyncio.gather(*self._pending_flushes, return_exceptions=True)
        await self.flush()

    def _requeue(self, batch: list[SpanData], message: str) -> None:
        self._export_queue[:0] = batch
        logger.error(message, extra={"requeued": len(batch)})

    def _release(self, span: Span) -> None:
        stack = self._current.get()
        if span not in stack:
            return
        index = len(stack) - 1 - stack[::-1].index(span)
        self._current.set(stack[:index] + stack[index + 1 :])

    def _should_sample(self) -> bool:
        if not self.config.enabled:
            return False
        if self.config.sample_rate is None:
            return True
        return random.random() < self.config.sample_rate

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; queued spans wait for the next flush")
            return
        task = loop.create_task(self.flush())
        self._pending_flushes.add(task)
        task.add_done_callback(self._pending_flushes.discard)

    def _ensure_export_task(self) -> None:
        """Start the periodic export task once an event loop is running."""
        if self._closed or not self.periodic_export_enabled:
            return
        if self._export_task is not None and not self._export_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._export_task = loop.create_task(self._export_periodically())

    async def _export_periodically(self) -> None:
        while True:
            await asyncio.sleep(EXPORT_INTERVAL_S)
            await self.flush()


def create_noop_tracer() -> Tracer:
    """A disabled tracer: spans work normally but nothing is recorded."""
    return Tracer(TracingConfig(enabled=False))
