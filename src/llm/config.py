"""
LLM Configuration for the prediction agents

Centralizes LLM settings and maps LiteLLM model strings onto the pricing
providers used for cost accounting.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class PricingProvider(str, Enum):
    """Providers with a pricing table in costs.calculator."""
    NOVA = "nova"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


# LiteLLM route prefix -> pricing provider
_ROUTE_PROVIDERS: Dict[str, PricingProvider] = {
    "openai": PricingProvider.OPENAI,
    "anthropic": PricingProvider.ANTHROPIC,
    "gemini": PricingProvider.GOOGLE,
    "vertex_ai": PricingProvider.GOOGLE,
}


def pricing_provider_for(model: str) -> PricingProvider:
    """
    Pricing provider for a LiteLLM model string.

    Examples:
        >>> pricing_provider_for("bedrock/amazon.nova-lite-v1:0")
        <PricingProvider.NOVA: 'nova'>
        >>> pricing_provider_for("gemini/gemini-1.5-flash")
        <PricingProvider.GOOGLE: 'google'>

    Unknown routes price as OpenAI, matching the calculator's fallback.
    """
    if "amazon.nova" in model:
        return PricingProvider.NOVA
    route = model.split("/", 1)[0] if "/" in model else ""
    return _ROUTE_PROVIDERS.get(route, PricingProvider.OPENAI)


def pricing_model_name(model: str) -> str:
    """
    Model name as keyed in the pricing tables.

    Bedrock cross-region profiles ("bedrock/us.amazon.nova-lite-v1:0") price
    as the base Nova model ID.
    """
    if "amazon.nova" in model:
        return model[model.index("amazon.nova"):]
    return model.split("/", 1)[1] if "/" in model else model


@dataclass
class LLMConfig:
    """
    LLM Configuration.

    Environment Variables:
        LITELLM_MODEL: Full model string (e.g., "bedrock/amazon.nova-lite-v1:0")
        LLM_TEMPERATURE: Sampling temperature (default: 0.1)
        LLM_MAX_TOKENS: Max output tokens (default: 2048)
        LLM_TIMEOUT: Request timeout in seconds (default: 120)
        LLM_MAX_RETRIES: LiteLLM retries (default: 3)

        Credentials are read by LiteLLM itself (AWS_*, OPENAI_API_KEY,
        ANTHROPIC_API_KEY, GEMINI_API_KEY).
    """

    model: str = field(default_factory=lambda: os.getenv("LITELLM_MODEL", "bedrock/amazon.nova-lite-v1:0"))
    temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))
    max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "2048")))
    timeout: int = field(default_factory=lambda: int(os.getenv("LLM_TIMEOUT", "120")))
    max_retries: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_RETRIES", "3")))

    @property
    def provider(self) -> PricingProvider:
        return pricing_provider_for(self.model)

    @property
    def model_name(self) -> str:
        """Model name without the route (e.g., 'amazon.nova-lite-v1:0')."""
        if "/" in self.model:
            return self.model.split("/", 1)[1]
        return self.model

    def to_litellm_kwargs(self) -> Dict[str, Any]:
        """Convert config to LiteLLM completion kwargs."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "num_retries": self.max_retries,
        }


# Singleton config instance
_config: Optional[LLMConfig] = None


def get_llm_config() -> LLMConfig:
    """Get the LLM configuration singleton."""
    global _config
    if _config is None:
        _config = LLMConfig()
    return _config
