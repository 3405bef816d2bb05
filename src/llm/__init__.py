"""
LLM Module - Model-agnostic LLM client with usage accounting

Supports any LiteLLM route; pricing covers:
- Amazon Nova via Bedrock (micro, lite, pro)
- OpenAI
- Anthropic
- Gemini
"""

from .config import (
    LLMConfig,
    PricingProvider,
    get_llm_config,
    pricing_model_name,
    pricing_provider_for,
)
from .litellm_client import LLMResponse, UnifiedLLMClient

__all__ = [
    "LLMConfig",
    "LLMResponse",
    "PricingProvider",
    "UnifiedLLMClient",
    "get_llm_config",
    "pricing_model_name",
    "pricing_provider_for",
]
