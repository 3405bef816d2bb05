"""
Cost Module - LLM cost accounting and budget-constrained agent selection
"""

from .calculator import (
    NOVA_PRICING,
    PROVIDER_PRICING,
    TokenPricing,
    UsageRecord,
    UsageTracker,
    calculate_cost,
    get_costs_by_provider,
    get_nova_cost_breakdown,
    get_nova_pricing,
    record_usage,
)
from .optimizer import (
    AGENT_COST_ESTIMATES,
    AgentPriority,
    BudgetAllocationResult,
    apply_cost_optimization,
    create_cost_optimization_audit_entry,
    estimate_agent_cost,
    filter_agents_by_cost,
    get_agent_cost,
    get_agent_priority,
    track_agent_cost,
)

__all__ = [
    "NOVA_PRICING",
    "PROVIDER_PRICING",
    "TokenPricing",
    "UsageRecord",
    "UsageTracker",
    "calculate_cost",
    "get_costs_by_provider",
    "get_nova_cost_breakdown",
    "get_nova_pricing",
    "record_usage",
    "AGENT_COST_ESTIMATES",
    "AgentPriority",
    "BudgetAllocationResult",
    "apply_cost_optimization",
    "create_cost_optimization_audit_entry",
    "estimate_agent_cost",
    "filter_agents_by_cost",
    "get_agent_cost",
    "get_agent_priority",
    "track_agent_cost",
]
