"""
Orchestra: unified entry point for routed, traced LLM completions
"""

import inspect
import json
from collections.abc import AsyncIterator, Mapping
from typing import Any

from pydantic import BaseModel, Field

from llm_orchestra.config.schemas import OrchestraConfig
from llm_orchestra.providers import BaseProvider, create_providers, get_provider_for_model
from llm_orchestra.routing.router import Router
from llm_orchestra.tracing.tracer import Span, SpanData, Tracer, create_noop_tracer
from llm_orchestra.types import (
    CompletionRequest,
    CompletionResponse,
    ModelCost,
    StreamChunk,
    TokenUsage,
)
from llm_orchestra.utils.logging import get_logger

logger = get_logger("orchestra")


class TokenTotals(BaseModel):
    input: int = 0
    output: int = 0


class ProviderStats(BaseModel):
    requests: int = 0
    tokens: TokenTotals = Field(default_factory=TokenTotals)
    cost: float = 0.0
    avg_latency_ms: float = 0.0


class ModelStats(BaseModel):
    requests: int = 0
    tokens: TokenTotals = Field(default_factory=TokenTotals)
    cost: float = 0.0


class OrchestraStats(BaseModel):
    """Usage totals since construction or the last ``reset_stats()``."""

    total_requests: int = 0
    total_tokens: TokenTotals = Field(default_factory=TokenTotals)
    total_cost: float = 0.0
    by_provider: dict[str, ProviderStats] = Field(default_factory=dict)
    by_model: dict[str, ModelStats] = Field(default_factory=dict)


class Orchestra:
    """Routes completions across providers and records every call.

    Each ``complete``/``stream`` call runs inside its own root span (a fresh
    trace ID per call) and feeds the usage statistics once it succeeds.
    """

    def __init__(
        self,
        config: OrchestraConfig | dict[str, Any] | None = None,
        providers: Mapping[str, BaseProvider] | None = None,
    ):
        if isinstance(config, OrchestraConfig):
            self.config = config
        else:
            self.config = OrchestraConfig.from_dict(config or {})

        self._providers: dict[str, BaseProvider] = (
            dict(providers)
            if providers is not None
            else create_providers(self.config.providers)
        )
        self.router = Router(
            self._providers,
            retry=self.config.retry,
            default_timeout_ms=self.config.default_timeout_ms,
        )

        tracing = self.config.observability.tracing
        self.tracer = Tracer(tracing) if tracing.enabled else create_noop_tracer()

        self._stats = OrchestraStats()

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a completion request with failover.

        Raises:
            AllProvidersFailedError: no chain entry produced a response
        """
        trace_id = self.tracer.generate_trace_id()

        async def run(span: Span) -> CompletionResponse:
            span.set_attributes(self._request_attributes(request))

            result = await self.router.route(request)
            response = result.response
            response.meta.trace_id = trace_id
            response.meta.span_id = span.context.span_id

            span.set_attribute("orchestra.failover_attempts", result.failover_attempts)
            if self.config.observability.tracing.include_responses:
                span.set_attribute("orchestra.response", response.content)

            self.tracer.record_llm_call(
                span,
                provider=response.meta.provider,
                model=response.meta.model,
                tokens=response.meta.tokens,
                cost=response.meta.cost,
                latency_ms=response.meta.latency_ms,
                cached=response.meta.cached,
            )
            self._record_usage(
                response.meta.provider,
                response.meta.model,
                response.meta.tokens,
                response.meta.cost,
                response.meta.latency_ms,
            )
            return response

        return await self.tracer.trace(
            "orchestra.complete",
            run,
            {"orchestra.trace_id": trace_id},
            trace_id=trace_id,
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a completion with failover before the first chunk."""
        trace_id = self.tracer.generate_trace_id()
        span = self.tracer.start_span(
            "orchestra.stream",
            {"orchestra.trace_id": trace_id},
            trace_id=trace_id,
            make_current=False,
        )
        span.set_attributes(self._request_attributes(request))
        final_meta = None
        content_parts: list[str] = []

        try:
            async for chunk in self.router.route_stream(request):
                if chunk.content:
                    content_parts.append(chunk.content)

                meta = chunk.meta
                if meta is not None:
                    meta.trace_id = trace_id
                    meta.span_id = span.context.span_id

                    if meta.provider and meta.model:
                        self.tracer.record_llm_call(
                            span,
                            provider=meta.provider,
                            model=meta.model,
                            tokens=meta.tokens,
                            cost=meta.cost,
                            latency_ms=meta.latency_ms,
                            cached=meta.cached,
                        )
                        if meta.failover_attempts is not None:
                            span.set_attribute(
                                "orchestra.failover_attempts", meta.failover_attempts
                            )

                    if (
                        meta.provider
                        and meta.model
                        and meta.tokens is not None
                        and meta.cost is not None
                        and meta.latency_ms is not None
                    ):
                        final_meta = meta

                yield chunk

            if final_meta is not None:
                self._record_usage(
                    final_meta.provider,
                    final_meta.model,
                    final_meta.tokens,
                    final_meta.cost,
                    final_meta.latency_ms,
                )
            if self.config.observability.tracing.include_responses:
                span.set_attribute("orchestra.response", "".join(content_parts))
            span.set_status("ok")
        except Exception as error:
            span.record_exception(error)
            raise
        finally:
            span.end()

    def get_providers(self) -> list[str]:
        return self.router.get_available_providers()

    async def is_provider_available(self, provider: str) -> bool:
        return await self.router.is_provider_available(provider)

    def get_provider_for_model(self, model: str) -> str | None:
        return get_provider_for_model(model)

    async def list_models(self, provider: str) -> list[str]:
        adapter = self._providers.get(provider)
        if adapter is None:
            return []
        return await adapter.list_models()

    def get_model_cost(self, model: str) -> ModelCost | None:
        provider = get_provider_for_model(model)
        if provider is None:
            return None
        adapter = self._providers.get(provider)
        if adapter is None:
            return None
        return adapter.get_model_cost(model)

    def get_stats(self) -> OrchestraStats:
        return self._stats.model_copy(deep=True)

    def reset_stats(self) -> None:
        self._stats = OrchestraStats()

    def get_traces(self) -> list[SpanData]:
        return self.tracer.get_spans()

    async def flush_traces(self) -> None:
        await self.tracer.flush()

    async def shutdown(self) -> None:
        """Flush outstanding spans and close provider clients."""
        await self.tracer.shutdown()
        for name, adapter in self._providers.items():
            close = getattr(adapter, "aclose", None)
            if close is None:
                continue
            result = close()
            if inspect.isawaitable(result):
                await result
            logger.debug(f"Closed provider client: {name}")

    def _request_attributes(self, request: CompletionRequest) -> dict[str, Any]:
        attributes: dict[str, Any] = {"orchestra.model": request.model}
        if request.fallback:
            attributes["orchestra.fallback"] = ",".join(request.fallback)
        if request.tags:
            attributes["orchestra.tags"] = ",".join(request.tags)
        if self.config.observability.tracing.include_prompts:
            attributes["orchestra.prompt"] = json.dumps(
                [m.model_dump(exclude_none=True) for m in request.messages]
            )
        return attributes

    def _record_usage(
        self,
        provider: str,
        model: str,
        tokens: TokenUsage,
        cost: float,
        latency_ms: float,
    ) -> None:
        stats = self._stats
        stats.total_requests += 1
        stats.total_tokens.input += tokens.input_tokens
        stats.total_tokens.output += tokens.output_tokens
        stats.total_cost += cost

        provider_stats = stats.by_provider.setdefault(provider, ProviderStats())
        previous = provider_stats.requests
        provider_stats.requests += 1
        provider_stats.tokens.input += tokens.input_tokens
        provider_stats.tokens.output += tokens.output_tokens
        provider_stats.cost += cost
        provider_stats.avg_latency_ms = (
            provider_stats.avg_latency_ms * previous + latency_ms
        ) / provider_stats.requests

        model_stats = stats.by_model.setdefault(model, ModelStats())
        model_stats.requests += 1
        model_stats.tokens.input += tokens.input_tokens
        model_stats.tokens.output += tokens.output_tokens
        model_stats.cost += cost

        if self.config.observability.cost_tracking.enabled:
            self._check_cost_alerts()

    def _check_cost_alerts(self) -> None:
        cost_tracking = self.config.observability.cost_tracking
        total = self._stats.total_cost

        if cost_tracking.alert_threshold and total >= cost_tracking.alert_threshold:
            logger.warning(
                f"Cost alert: total cost ${total:.4f} exceeds threshold "
                f"${cost_tracking.alert_threshold}",
                extra={"total_cost": round(total, 6)},
            )

        if cost_tracking.budget_limit and total >= cost_tracking.budget_limit:
            logger.error(
                f"Budget exceeded: total cost ${total:.4f} exceeds limit "
                f"${cost_tracking.budget_limit}",
                extra={"total_cost": round(total, 6)},
            )
