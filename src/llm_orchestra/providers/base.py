"""
Base class for LLM provider adapters
"""

import abc
import os
import time
import uuid
from collections.abc import AsyncIterator

from llm_orchestra.types import (
    CompletionRequest,
    CompletionResponse,
    ModelCost,
    StreamChunk,
    TokenUsage,
)
from llm_orchestra.utils.logging import get_logger

logger = get_logger("providers.base")


class BaseProvider(abc.ABC):
    """Uniform capability contract every vendor adapter implements.

    Adapters are looked up by ``name`` in the router's provider mapping; the
    only state they share through this base class is their credentials.
    """

    name: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        organization_id: str | None = None,
        api_key_env: str | None = None,
    ):
        self.api_key_env = api_key_env
        self.api_key = api_key or self._get_api_key()
        self.base_url = base_url
        self.organization_id = organization_id

        if not self.api_key:
            from llm_orchestra.core.exceptions import ProviderError

            raise ProviderError(
                f"No API key provided for provider {self.name}", provider=self.name
            )

    def _get_api_key(self) -> str | None:
        """Get API key from environment variable if specified"""
        if self.api_key_env:
            return os.getenv(self.api_key_env)
        return None

    @abc.abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Issue a non-streaming completion; raises on failure."""

    @abc.abstractmethod
    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Issue a streaming completion.

        May raise before the first chunk or mid-sequence.
        """

    @abc.abstractmethod
    async def list_models(self) -> list[str]:
        """List model names the provider serves."""

    @abc.abstractmethod
    def get_model_cost(self, model: str) -> ModelCost:
        """Per-1K-token pricing for ``model``."""

    async def is_available(self) -> bool:
        """Availability check; True iff ``list_models`` succeeds. Never raises."""
        try:
            await self.list_models()
            return True
        except Exception as e:
            logger.debug(f"Provider {self.name} unavailable: {e}")
            return False

    def calculate_cost(self, model: str, usage: TokenUsage) -> float:
        """Cost of ``usage`` at the model's pricing, rounded to 6 decimals."""
        pricing = self.get_model_cost(model)
        input_cost = usage.input_tokens / 1000 * pricing.input_per_1k
        output_cost = usage.output_tokens / 1000 * pricing.output_per_1k
        return round(input_cost + output_cost, 6)

    @staticmethod
    def generate_span_id() -> str:
        return f"span_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"
