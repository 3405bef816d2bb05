"""
LLM Cost Calculator

Converts token usage into USD cost using per-provider pricing tables and
aggregates usage records for reporting.

Pricing (per 1K tokens):
    Nova Micro:  $0.000035 input, $0.00014 output
    Nova Lite:   $0.00006 input,  $0.00024 output
    Nova Pro:    $0.0008 input,   $0.0032 output
    OpenAI:      $0.03 input,     $0.06 output (GPT-4, also the fallback)
    Anthropic:   $0.015 input,    $0.075 output
    Google:      $0.00025 input,  $0.0005 output
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class TokenPricing:
    """Per-1K-token input and output rates in USD."""
    input_cost_per_1k_tokens: float
    output_cost_per_1k_tokens: float


NOVA_PRICING: Dict[str, TokenPricing] = {
    "amazon.nova-micro-v1:0": TokenPricing(0.000035, 0.00014),
    "amazon.nova-lite-v1:0": TokenPricing(0.00006, 0.00024),
    "amazon.nova-pro-v1:0": TokenPricing(0.0008, 0.0032),
}

PROVIDER_PRICING: Dict[str, TokenPricing] = {
    "openai": TokenPricing(0.03, 0.06),
    "anthropic": TokenPricing(0.015, 0.075),
    "google": TokenPricing(0.00025, 0.0005),
}

DEFAULT_PROVIDER = "openai"
NOVA_VARIANTS = ("micro", "lite", "pro")


@dataclass(frozen=True)
class UsageRecord:
    """One LLM invocation's token usage and cost."""
    provider: str
    model_name: str
    input_tokens: int
    output_tokens: int
    total_cost: float
    agent_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


def get_nova_pricing(model_id: str) -> TokenPricing:
    """
    Get pricing for a Nova model variant.

    Bedrock cross-region profiles and route prefixes ("us.amazon.nova-lite-v1:0",
    "bedrock/amazon.nova-lite-v1:0") price as the base model ID.

    Args:
        model_id: Nova model ID (e.g., "amazon.nova-lite-v1:0")

    Returns:
        TokenPricing with input and output rates per 1K tokens

    Raises:
        ValueError: If model_id is not a known Nova model
    """
    base_id = model_id[model_id.index("amazon.nova"):] if "amazon.nova" in model_id else model_id
    pricing = NOVA_PRICING.get(base_id)
    if pricing is None:
        raise ValueError(
            f'Invalid Nova model ID: "{model_id}". '
            f"Valid options: {', '.join(NOVA_PRICING)}"
        )
    return pricing


def get_provider_pricing(provider: str) -> TokenPricing:
    """Pricing for a non-Nova provider; unknown providers fall back to GPT-4 rates."""
    return PROVIDER_PRICING.get(provider, PROVIDER_PRICING[DEFAULT_PROVIDER])


def calculate_cost(
    provider: str,
    model_name: str,
    input_tokens: int,
    output_tokens: int
) -> float:
    """
    Calculate USD cost for one LLM call.

    Args:
        provider: LLM provider ("nova", "openai", "anthropic", "google")
        model_name: Model name or ID (only consulted for Nova)
        input_tokens: Number of input tokens
        output_tokens: Number of output tokens

    Returns:
        Cost in USD

    Example:
        >>> round(calculate_cost("nova", "amazon.nova-lite-v1:0", 2000, 500), 8)
        0.00024
    """
    if provider == "nova":
        pricing = get_nova_pricing(model_name)
    else:
        pricing = get_provider_pricing(provider)

    input_cost = (input_tokens / 1000) * pricing.input_cost_per_1k_tokens
    output_cost = (output_tokens / 1000) * pricing.output_cost_per_1k_tokens
    return input_cost + output_cost


def nova_variant(model_name: str) -> str:
    """Size variant (micro/lite/pro) of a Nova model ID."""
    if "micro" in model_name:
        return "micro"
    if "lite" in model_name:
        return "lite"
    return "pro"


def record_usage(
    provider: str,
    model_name: str,
    input_tokens: int,
    output_tokens: int,
    agent_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> UsageRecord:
    """
    Build a usage record with the computed cost.

    Nova records are additionally tagged with their size variant and rates so
    that get_nova_cost_breakdown() can group them.
    """
    total_cost = calculate_cost(provider, model_name, input_tokens, output_tokens)
    record_metadata = dict(metadata or {})

    if provider == "nova":
        pricing = get_nova_pricing(model_name)
        record_metadata.update({
            "model_variant": nova_variant(model_name),
            "input_cost_per_1k_tokens": pricing.input_cost_per_1k_tokens,
            "output_cost_per_1k_tokens": pricing.output_cost_per_1k_tokens,
        })

    return UsageRecord(
        provider=provider,
        model_name=model_name,
        agent_name=agent_name,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_cost=total_cost,
        metadata=record_metadata,
    )


def _empty_totals() -> Dict[str, float]:
    return {"cost": 0.0, "input_tokens": 0, "output_tokens": 0, "invocation_count": 0}


def _add_to_totals(totals: Dict[str, float], record: UsageRecord) -> None:
    totals["cost"] += record.total_cost
    totals["input_tokens"] += record.input_tokens
    totals["output_tokens"] += record.output_tokens
    totals["invocation_count"] += 1


def get_costs_by_provider(records: Iterable[UsageRecord]) -> Dict[str, Dict[str, Any]]:
    """
    Aggregate usage records by provider, with a per-model breakdown.

    Returns:
        Dict of provider -> {provider, total_cost, total_input_tokens,
        total_output_tokens, invocation_count, models}
    """
    summaries: Dict[str, Dict[str, Any]] = {}

    for record in records:
        summary = summaries.setdefault(record.provider, {
            "provider": record.provider,
            "total_cost": 0.0,
            "total_input_tokens": 0,
            "total_output_tokens": 0,
            "invocation_count": 0,
            "models": {},
        })
        summary["total_cost"] += record.total_cost
        summary["total_input_tokens"] += record.input_tokens
        summary["total_output_tokens"] += record.output_tokens
        summary["invocation_count"] += 1

        model_totals = summary["models"].setdefault(record.model_name, _empty_totals())
        _add_to_totals(model_totals, record)

    return summaries


def get_nova_cost_breakdown(records: Iterable[UsageRecord]) -> Dict[str, Dict[str, float]]:
    """
    Break Nova usage down by size variant.

    Non-Nova records are ignored. Nova records without a recognised variant
    still count toward the total.
    """
    breakdown = {variant: _empty_totals() for variant in (*NOVA_VARIANTS, "total")}

    for record in records:
        if record.provider != "nova":
            continue
        variant = record.metadata.get("model_variant")
        if variant in NOVA_VARIANTS:
            _add_to_totals(breakdown[variant], record)
        _add_to_totals(breakdown["total"], record)

    return breakdown


class UsageTracker:
    """
    Accumulates usage records for one analysis.

    History is bounded so a long-lived tracker never grows without limit.
    """

    def __init__(self, max_records: int = 1000):
        self._records: Deque[UsageRecord] = deque(maxlen=max_records)

    def record(self, record: UsageRecord) -> UsageRecord:
        self._records.append(record)
        return record

    def record_usage(self, provider: str, model_name: str, input_tokens: int,
                     output_tokens: int, agent_name: Optional[str] = None,
                     metadata: Optional[Dict[str, Any]] = None) -> UsageRecord:
        """Compute and store a usage record in one step."""
        return self.record(record_usage(
            provider, model_name, input_tokens, output_tokens,
            agent_name=agent_name, metadata=metadata,
        ))

    @property
    def records(self) -> List[UsageRecord]:
        return list(self._records)

    @property
    def total_cost(self) -> float:
        return sum(r.total_cost for r in self._records)

    def costs_by_provider(self) -> Dict[str, Dict[str, Any]]:
        return get_costs_by_provider(self._records)

    def nova_cost_breakdown(self) -> Dict[str, Dict[str, float]]:
        return get_nova_cost_breakdown(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
