"""
Google Gemini provider adapter
"""

from llm_orchestra.providers.openai_provider import OpenAIProvider
from llm_orchestra.providers.registry import register_provider
from llm_orchestra.types import ModelCost

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

MODEL_ALIASES: dict[str, str] = {
    "gemini-pro": "gemini-1.5-pro",
    "gemini-flash": "gemini-1.5-flash",
}

# Per 1K tokens
MODEL_PRICING: dict[str, ModelCost] = {
    "gemini-pro": ModelCost(input_per_1k=0.00025, output_per_1k=0.0005),
    "gemini-pro-vision": ModelCost(input_per_1k=0.00025, output_per_1k=0.0005),
    "gemini-1.5-pro": ModelCost(input_per_1k=0.00125, output_per_1k=0.005),
    "gemini-1.5-flash": ModelCost(input_per_1k=0.000075, output_per_1k=0.0003),
    "gemini-2.0-flash": ModelCost(input_per_1k=0.0001, output_per_1k=0.0004),
}
DEFAULT_PRICING = MODEL_PRICING["gemini-1.5-pro"]


@register_provider("google")
class GoogleProvider(OpenAIProvider):
    """Gemini through Google's OpenAI-compatible chat.completions endpoint."""

    vendor = "Google"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        organization_id: str | None = None,
        api_key_env: str | None = "GOOGLE_API_KEY",
    ):
        super().__init__(
            api_key=api_key,
            base_url=base_url or DEFAULT_BASE_URL,
            organization_id=organization_id,
            api_key_env=api_key_env,
        )

    async def list_models(self) -> list[str]:
        return [
            "gemini-1.5-pro",
            "gemini-1.5-flash",
            "gemini-2.0-flash",
            "gemini-pro",
            "gemini-pro-vision",
        ]

    def get_model_cost(self, model: str) -> ModelCost:
        return MODEL_PRICING.get(self.resolve_model(model), DEFAULT_PRICING)

    def resolve_model(self, model: str) -> str:
        return MODEL_ALIASES.get(model, model)
