"""
Cost Optimizer (Budget Allocator)

Decides which agents may run in one analysis under a per-analysis cost ceiling:
- Estimates cost before agent activation
- Always runs the CRITICAL baseline agents
- Fills the remaining budget greedily by priority tier (HIGH -> MEDIUM -> LOW)
- Produces a flat audit entry describing what was skipped and why
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence, Union

from loguru import logger

from config import CostOptimizationConfig, EngineConfig

from .calculator import calculate_cost


class AgentPriority(IntEnum):
    """Admission order under budget pressure (lower value runs first)."""
    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4


DEFAULT_AGENT_COST = 0.10

# Estimated USD per invocation (~2K input, ~500 output tokens)
AGENT_COST_ESTIMATES: Dict[str, float] = {
    # Baseline agents
    "market_microstructure": 0.10,
    "probability_baseline": 0.08,
    "risk_assessment": 0.10,
    # Event intelligence
    "breaking_news": 0.12,
    "event_impact": 0.12,
    # Polling & statistical
    "polling_intelligence": 0.15,
    "historical_pattern": 0.10,
    # Sentiment & narrative
    "media_sentiment": 0.10,
    "social_sentiment": 0.10,
    "narrative_velocity": 0.10,
    # Price action
    "momentum": 0.08,
    "mean_reversion": 0.08,
    # Event scenario
    "catalyst": 0.10,
    "tail_risk": 0.10,
    # Risk philosophy
    "aggressive": 0.06,
    "conservative": 0.06,
    "neutral": 0.06,
}

AGENT_PRIORITIES: Dict[str, AgentPriority] = {
    "market_microstructure": AgentPriority.CRITICAL,
    "probability_baseline": AgentPriority.CRITICAL,
    "risk_assessment": AgentPriority.CRITICAL,

    "breaking_news": AgentPriority.HIGH,
    "event_impact": AgentPriority.HIGH,
    "polling_intelligence": AgentPriority.HIGH,

    "momentum": AgentPriority.MEDIUM,
    "mean_reversion": AgentPriority.MEDIUM,
    "catalyst": AgentPriority.MEDIUM,
    "historical_pattern": AgentPriority.MEDIUM,
    "tail_risk": AgentPriority.MEDIUM,
    "aggressive": AgentPriority.MEDIUM,
    "conservative": AgentPriority.MEDIUM,
    "neutral": AgentPriority.MEDIUM,

    "media_sentiment": AgentPriority.LOW,
    "social_sentiment": AgentPriority.LOW,
    "narrative_velocity": AgentPriority.LOW,
}


@dataclass
class BudgetAllocationResult:
    """Outcome of budget-constrained agent admission."""
    selected_agents: List[str]
    skipped_agents: List[str]
    estimated_cost: float
    max_cost: float
    cost_breakdown: Dict[str, float] = field(default_factory=dict)
    optimization_applied: bool = False

    @property
    def remaining_budget(self) -> float:
        # Signed: negative when the CRITICAL tier alone exceeds the ceiling
        return self.max_cost - self.estimated_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_agents": list(self.selected_agents),
            "skipped_agents": list(self.skipped_agents),
            "estimated_cost": self.estimated_cost,
            "max_cost": self.max_cost,
            "remaining_budget": self.remaining_budget,
            "cost_breakdown": dict(self.cost_breakdown),
            "optimization_applied": self.optimization_applied,
        }


def get_agent_cost(agent_name: str) -> float:
    """Estimated cost of one invocation of an agent."""
    return AGENT_COST_ESTIMATES.get(agent_name, DEFAULT_AGENT_COST)


def get_agent_priority(agent_name: str) -> AgentPriority:
    """Priority tier of an agent; unknown agents are LOW."""
    return AGENT_PRIORITIES.get(agent_name, AgentPriority.LOW)


def estimate_agent_cost(agent_names: Sequence[str]) -> float:
    """Estimated total cost of running every agent in the list once."""
    return sum(get_agent_cost(name) for name in agent_names)


def filter_agents_by_cost(
    candidate_agents: Sequence[str],
    max_cost: float,
    skip_low_impact: bool = True
) -> BudgetAllocationResult:
    """
    Select agents that fit the budget.

    CRITICAL agents are always selected, even when their combined cost exceeds
    max_cost. The rest of the budget is consumed greedily in tier order
    HIGH -> MEDIUM -> LOW, preserving candidate order within a tier. An agent
    that does not fit is skipped and evaluation moves on to the next one.

    skip_low_impact does not bypass the budget check here; it only gates
    whether apply_cost_optimization() calls this function at all.

    Args:
        candidate_agents: Candidate agent names
        max_cost: Budget ceiling in USD
        skip_low_impact: Whether low-impact agents may be skipped

    Returns:
        BudgetAllocationResult
    """
    tiers: Dict[AgentPriority, List[str]] = {priority: [] for priority in AgentPriority}
    for agent in candidate_agents:
        tiers[get_agent_priority(agent)].append(agent)

    selected: List[str] = []
    skipped: List[str] = []
    breakdown: Dict[str, float] = {}

    for agent in tiers[AgentPriority.CRITICAL]:
        selected.append(agent)
        breakdown[agent] = get_agent_cost(agent)

    critical_cost = sum(breakdown.values())
    remaining = max(0.0, max_cost - critical_cost)

    for priority in (AgentPriority.HIGH, AgentPriority.MEDIUM, AgentPriority.LOW):
        for agent in tiers[priority]:
            cost = get_agent_cost(agent)
            if cost <= remaining + 1e-9:
                selected.append(agent)
                breakdown[agent] = cost
                remaining -= cost
            else:
                skipped.append(agent)

    estimated_cost = sum(breakdown[agent] for agent in selected)

    if skipped:
        logger.info(
            f"Budget ${max_cost:.2f} admitted {len(selected)} agents "
            f"(${estimated_cost:.2f}), skipped {len(skipped)}: {', '.join(skipped)}"
        )
    if critical_cost > max_cost:
        logger.warning(
            f"Critical agents cost ${critical_cost:.2f}, exceeding budget ${max_cost:.2f}"
        )

    return BudgetAllocationResult(
        selected_agents=selected,
        skipped_agents=skipped,
        estimated_cost=estimated_cost,
        max_cost=max_cost,
        cost_breakdown=breakdown,
        optimization_applied=bool(skipped),
    )


def apply_cost_optimization(
    candidate_agents: Sequence[str],
    config: Union[EngineConfig, CostOptimizationConfig]
) -> BudgetAllocationResult:
    """
    Main entry point for cost optimization.

    When skip_low_impact_agents is off every candidate runs and the result is
    flagged optimization_applied=False. Otherwise candidates are filtered
    against max_cost_per_analysis.

    Args:
        candidate_agents: Candidate agent names
        config: Engine configuration (or just its cost_optimization section)
    """
    cost_config = getattr(config, "cost_optimization", config)
    max_cost = cost_config.max_cost_per_analysis

    if not cost_config.skip_low_impact_agents:
        agents = list(candidate_agents)
        return BudgetAllocationResult(
            selected_agents=agents,
            skipped_agents=[],
            estimated_cost=estimate_agent_cost(agents),
            max_cost=max_cost,
            cost_breakdown={agent: get_agent_cost(agent) for agent in agents},
            optimization_applied=False,
        )

    return filter_agents_by_cost(candidate_agents, max_cost, skip_low_impact=True)


def create_cost_optimization_audit_entry(result: BudgetAllocationResult) -> Dict[str, Any]:
    """
    Flat audit-trail record for a cost optimization decision.

    budgetUtilization is the percentage of max_cost consumed (0 when max_cost is 0).
    """
    utilization = (result.estimated_cost / result.max_cost) * 100 if result.max_cost else 0.0
    return {
        "optimizationApplied": result.optimization_applied,
        "maxCost": result.max_cost,
        "estimatedCost": result.estimated_cost,
        "remainingBudget": result.remaining_budget,
        "selectedAgentCount": len(result.selected_agents),
        "skippedAgentCount": len(result.skipped_agents),
        "selectedAgents": list(result.selected_agents),
        "skippedAgents": list(result.skipped_agents),
        "costBreakdown": dict(result.cost_breakdown),
        "budgetUtilization": utilization,
    }


def track_agent_cost(
    agent_name: str,
    actual_tokens: Optional[Dict[str, int]] = None,
    provider: Optional[str] = None,
    model_name: Optional[str] = None
) -> float:
    """
    Actual cost of an agent run when token usage is known, else its estimate.

    Args:
        agent_name: Agent name
        actual_tokens: {"input": int, "output": int} if available
        provider: LLM provider (defaults to GPT-4 pricing)
        model_name: Model name (required for Nova)
    """
    if actual_tokens is None:
        return get_agent_cost(agent_name)

    return calculate_cost(
        provider or "openai",
        model_name or "",
        actual_tokens.get("input", 0),
        actual_tokens.get("output", 0),
    )
