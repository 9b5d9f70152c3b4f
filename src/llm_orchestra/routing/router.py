"""
Failover routing with bounded retries and per-attempt timeouts.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from llm_orchestra.config.schemas import RetryConfig
from llm_orchestra.core.exceptions import (
    AllProvidersFailedError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
)
from llm_orchestra.providers.base import BaseProvider
from llm_orchestra.providers.registry import get_provider_for_model
from llm_orchestra.types import CompletionRequest, CompletionResponse, StreamChunk
from llm_orchestra.utils.logging import get_logger

logger = get_logger("routing.router")

DEFAULT_TIMEOUT_MS = 60000.0

ModelResolver = Callable[[str], str | None]


@dataclass(frozen=True, slots=True)
class ModelChainEntry:
    model: str
    provider: str


@dataclass(frozen=True, slots=True)
class Attempt:
    """Record of one try against one chain entry."""

    provider: str
    model: str
    success: bool
    error: BaseException | None = None
    latency_ms: float = 0.0


@dataclass(slots=True)
class RouteResult:
    response: CompletionResponse
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def failover_attempts(self) -> int:
        return sum(1 for attempt in self.attempts if not attempt.success)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


class Router:
    """Turns a request plus its fallback list into a sequence of provider attempts.

    Chain entries are tried in order: the primary model first, then each
    resolvable fallback. Each entry gets up to ``max_retries + 1`` attempts with
    exponential backoff between them; a non-retryable error moves straight on
    to the next entry. The first success ends the whole route.
    """

    def __init__(
        self,
        providers: Mapping[str, BaseProvider],
        retry: RetryConfig | dict[str, Any] | None = None,
        default_timeout_ms: float | None = None,
        resolver: ModelResolver = get_provider_for_model,
    ):
        self._providers: dict[str, BaseProvider] = dict(providers)
        self.retry_config = RetryConfig.from_overrides(retry)
        self.default_timeout_ms = default_timeout_ms or DEFAULT_TIMEOUT_MS
        self._resolver = resolver
        # Provider calls that lost their timeout race; kept alive until they settle
        self._abandoned: set[asyncio.Future] = set()

    async def route(self, request: CompletionRequest) -> RouteResult:
        """Route a completion request with automatic retry and failover.

        Raises:
            AllProvidersFailedError: every chain entry exhausted its retry budget
        """
        attempts: list[Attempt] = []
        timeout_ms = request.timeout_ms or self.default_timeout_ms
        max_retries = self.retry_config.max_retries

        for entry in self.build_model_chain(request):
            adapter = self._providers.get(entry.provider)
            if adapter is None:
                attempts.append(self._not_configured(entry))
                continue

            entry_request = request.for_model(entry.model)

            for retry in range(max_retries + 1):
                start = time.monotonic()
                logger.debug(
                    f"Attempt {retry + 1}/{max_retries + 1} for {entry.provider}/{entry.model}"
                )
                try:
                    response = await self._execute_with_timeout(
                        adapter.complete(entry_request), timeout_ms, entry.provider
                    )
                except Exception as error:
                    attempts.append(
                        Attempt(
                            provider=entry.provider,
                            model=entry.model,
                            success=False,
                            error=error,
                            latency_ms=_elapsed_ms(start),
                        )
                    )
                    retryable = self.is_retryable(error)
                    logger.warning(
                        f"Attempt against {entry.provider}/{entry.model} failed: {error}",
                        extra={"retryable": retryable},
                    )
                    if not retryable or retry == max_retries:
                        break

                    await self._sleep(self.backoff_delay_ms(retry))
                    continue

                response.meta.failover_attempts = len(attempts)
                attempts.append(
                    Attempt(
                        provider=entry.provider,
                        model=entry.model,
                        success=True,
                        latency_ms=_elapsed_ms(start),
                    )
                )
                if len(attempts) > 1:
                    logger.info(
                        f"Request served by {entry.provider}/{entry.model} "
                        f"after {len(attempts) - 1} failed attempts"
                    )
                return RouteResult(response=response, attempts=attempts)

            logger.info(f"Failing over from {entry.provider}/{entry.model}")

        logger.error(f"All providers failed after {len(attempts)} attempts")
        raise AllProvidersFailedError(attempts)

    async def route_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Route a streaming request.

        Failover only happens before the first chunk of an entry reaches the
        caller; once content has been yielded a failure propagates unchanged.
        Streams are not retried, and neither stream setup nor chunk delivery
        is bounded by ``timeout_ms``; callers needing a deadline must apply
        their own.
        """
        attempts: list[Attempt] = []

        for entry in self.build_model_chain(request):
            adapter = self._providers.get(entry.provider)
            if adapter is None:
                attempts.append(self._not_configured(entry))
                continue

            start = time.monotonic()
            started = False
            try:
                async for chunk in adapter.stream(request.for_model(entry.model)):
                    if chunk.meta is not None:
                        chunk.meta.failover_attempts = len(attempts)
                    started = True
                    yield chunk
                return
            except Exception as error:
                if started:
                    logger.error(
                        f"Stream from {entry.provider}/{entry.model} failed mid-stream: {error}"
                    )
                    raise
                attempts.append(
                    Attempt(
                        provider=entry.provider,
                        model=entry.model,
                        success=False,
                        error=error,
                        latency_ms=_elapsed_ms(start),
                    )
                )
                logger.warning(
                    f"Stream from {entry.provider}/{entry.model} failed before first chunk: {error}"
                )

        logger.error(f"All providers failed to stream after {len(attempts)} attempts")
        raise AllProvidersFailedError(attempts)

    def build_model_chain(self, request: CompletionRequest) -> list[ModelChainEntry]:
        """Primary model followed by fallbacks; unresolvable names are dropped."""
        chain: list[ModelChainEntry] = []

        for model in [request.model, *(request.fallback or [])]:
            provider = self._resolver(model)
            if provider:
                chain.append(ModelChainEntry(model=model, provider=provider))
            else:
                logger.debug(f"No provider resolves model '{model}', skipping")

        return chain

    def is_retryable(self, error: BaseException) -> bool:
        """True iff a retryable token occurs in the error's code, status or message."""
        code = getattr(error, "code", None)
        status = getattr(error, "status", None)
        if status is None:
            status = getattr(error, "status_code", None)
        message = getattr(error, "message", None)
        if not isinstance(message, str):
            message = str(error)

        fields = (
            "" if code is None else str(code),
            "" if status is None else str(status),
            message,
        )
        return any(
            token in value
            for token in self.retry_config.retryable_errors
            for value in fields
        )

    def backoff_delay_ms(self, retry_index: int) -> float:
        config = self.retry_config
        return min(
            config.initial_delay_ms * config.backoff_multiplier**retry_index,
            config.max_delay_ms,
        )

    async def _execute_with_timeout(self, call, timeout_ms: float, provider: str):
        """Race ``call`` against ``timeout_ms``.

        The losing provider call is not cancelled; it runs to completion in the
        background and its outcome is discarded.
        """
        task = asyncio.ensure_future(call)
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        if task in done:
            return task.result()

        self._abandoned.add(task)
        task.add_done_callback(self._discard_abandoned)
        raise ProviderTimeoutError(provider, timeout_ms)

    def _discard_abandoned(self, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Abandoned provider call finished with error: {task.exception()}")

    async def _sleep(self, delay_ms: float) -> None:
        await asyncio.sleep(delay_ms / 1000)

    def _not_configured(self, entry: ModelChainEntry) -> Attempt:
        logger.warning(f"Provider {entry.provider} not configured, skipping {entry.model}")
        return Attempt(
            provider=entry.provider,
            model=entry.model,
            success=False,
            error=ProviderNotConfiguredError(entry.provider, entry.model),
            latency_ms=0.0,
        )

    def get_available_providers(self) -> list[str]:
        return list(self._providers)

    async def is_provider_available(self, provider: str) -> bool:
        adapter = self._providers.get(provider)
        if adapter is None:
            return False
        return await adapter.is_available()
