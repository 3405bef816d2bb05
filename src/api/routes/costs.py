"""
Cost API Routes

Endpoints for budget-constrained agent selection and LLM cost calculation.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from config import CostOptimizationConfig, EngineConfig
from costs import apply_cost_optimization, create_cost_optimization_audit_entry, record_usage

from .health import get_config

router = APIRouter(prefix="/costs", tags=["costs"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CostOptimizationRequest(BaseModel):
    """Request model for agent selection under a budget."""
    candidate_agents: List[str] = Field(..., description="Agent names eligible for this analysis")
    max_cost: Optional[float] = Field(None, gt=0, description="Budget ceiling in USD (defaults to config)")
    skip_low_impact_agents: Optional[bool] = Field(None, description="Enable pruning (defaults to config)")


class CostCalculationRequest(BaseModel):
    """Request model for one LLM call's cost."""
    provider: str = Field(..., description="nova, openai, anthropic or google")
    model_name: str = Field("", description="Model ID (required for nova, e.g. amazon.nova-lite-v1:0)")
    input_tokens: int = Field(..., ge=0)
    output_tokens: int = Field(..., ge=0)
    agent_name: Optional[str] = None


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/optimize")
async def optimize_costs(
    request: CostOptimizationRequest,
    config: EngineConfig = Depends(get_config)
) -> Dict[str, Any]:
    """
    Select agents under the per-analysis budget.

    CRITICAL agents always run. Returns the cost optimization audit entry.
    """
    defaults = config.cost_optimization
    cost_config = CostOptimizationConfig(
        max_cost_per_analysis=request.max_cost if request.max_cost is not None else defaults.max_cost_per_analysis,
        skip_low_impact_agents=(
            request.skip_low_impact_agents
            if request.skip_low_impact_agents is not None
            else defaults.skip_low_impact_agents
        ),
    )

    result = apply_cost_optimization(request.candidate_agents, cost_config)
    return create_cost_optimization_audit_entry(result)


@router.post("/calculate")
async def calculate_costs(request: CostCalculationRequest) -> Dict[str, Any]:
    """Calculate the cost of one LLM call and return its usage record."""
    try:
        record = record_usage(
            request.provider,
            request.model_name,
            request.input_tokens,
            request.output_tokens,
            agent_name=request.agent_name,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "provider": record.provider,
        "model_name": record.model_name,
        "agent_name": record.agent_name,
        "input_tokens": record.input_tokens,
        "output_tokens": record.output_tokens,
        "total_cost": record.total_cost,
        "timestamp": record.timestamp.isoformat(),
        "metadata": record.metadata,
    }
