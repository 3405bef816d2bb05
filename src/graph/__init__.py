"""Graph components for prediction market analysis"""

from .memory_graph import analyze_market, build_memory_graph
from .nodes import (
    create_cost_optimization_node,
    create_evolution_tracking_node,
    create_memory_retrieval_node,
)
from .state import AnalysisState, audit_entry, create_initial_state

__all__ = [
    "AnalysisState",
    "analyze_market",
    "audit_entry",
    "build_memory_graph",
    "create_cost_optimization_node",
    "create_evolution_tracking_node",
    "create_initial_state",
    "create_memory_retrieval_node",
]
