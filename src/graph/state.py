"""
Prediction Market Analysis - Graph State Schema

Defines the shared state passed between the memory and cost nodes of the
analysis pipeline.
"""

import operator
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Sequence, TypedDict

from memory.evolution import EvolutionEvent
from memory.types import AgentMemoryContext, AgentSignal


class AnalysisState(TypedDict):
    """
    Shared state for one market analysis.

    Attributes:
        market_id: Market condition ID (None when ingestion failed)
        candidate_agents: Agents eligible to run before cost filtering
        selected_agents: Agents admitted under the cost budget
        skipped_agents: Agents dropped by the cost budget
        memory_context: Agent name -> that agent's history on this market
        agent_signals: Signals produced by agents in this run
        evolution_events: Changes detected against the agents' history
        audit_log: Append-only stage entries
        timestamp: Analysis start time
    """
    market_id: Optional[str]
    candidate_agents: List[str]
    selected_agents: List[str]
    skipped_agents: List[str]
    memory_context: Dict[str, AgentMemoryContext]
    agent_signals: List[AgentSignal]
    evolution_events: List[EvolutionEvent]
    audit_log: Annotated[List[Dict[str, Any]], operator.add]
    timestamp: str


def create_initial_state(
    market_id: Optional[str],
    candidate_agents: Sequence[str],
    agent_signals: Optional[Sequence[AgentSignal]] = None
) -> AnalysisState:
    """
    Create initial state for graph execution.

    Args:
        market_id: Market condition ID
        candidate_agents: Agents that could run for this market
        agent_signals: Signals already produced (for evolution tracking)

    Returns:
        Initialized AnalysisState
    """
    return AnalysisState(
        market_id=market_id,
        candidate_agents=list(candidate_agents),
        selected_agents=[],
        skipped_agents=[],
        memory_context={},
        agent_signals=list(agent_signals or []),
        evolution_events=[],
        audit_log=[],
        timestamp=datetime.now(timezone.utc).isoformat()
    )


def audit_entry(stage: str, **data: Any) -> Dict[str, Any]:
    """Build one audit log entry for a pipeline stage."""
    return {
        "stage": stage,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }
