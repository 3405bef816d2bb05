"""
Prediction Market Analysis Graph

LangGraph orchestration of cost-constrained agent selection, memory retrieval
and evolution tracking.
"""

from typing import Optional, Sequence

from langgraph.graph import END, StateGraph

from config import EngineConfig, get_engine_config
from memory.evolution import EvolutionTracker
from memory.metrics import MemoryMetricsCollector
from memory.retrieval import MemoryRetrievalService
from memory.types import AgentSignal

from .nodes import create_cost_optimization_node, create_evolution_tracking_node, create_memory_retrieval_node
from .state import AnalysisState, create_initial_state


def build_memory_graph(
    service: MemoryRetrievalService,
    config: Optional[EngineConfig] = None,
    tracker: Optional[EvolutionTracker] = None,
    metrics: Optional[MemoryMetricsCollector] = None
):
    """
    Construct the analysis StateGraph.

    Graph flow:
    1. Cost optimization → admit agents under the budget
    2. Memory retrieval → load each admitted agent's history
    3. Evolution tracking → diff new signals against that history

    Args:
        service: Memory retrieval service
        config: Engine configuration (defaults to the environment singleton)
        tracker: Evolution tracker (a fresh one sharing `metrics` by default)
        metrics: Memory metrics collector for this analysis

    Returns:
        Compiled LangGraph

    Example:
        >>> graph = build_memory_graph(MemoryRetrievalService(store))
        >>> result = await graph.ainvoke(create_initial_state("0xabc", ["momentum"]))
    """
    config = config or get_engine_config()
    tracker = tracker or EvolutionTracker(metrics=metrics)

    workflow = StateGraph(AnalysisState)

    workflow.add_node("cost_optimization", create_cost_optimization_node(config))
    workflow.add_node("memory_retrieval", create_memory_retrieval_node(service, config, metrics))
    workflow.add_node("evolution_tracking", create_evolution_tracking_node(tracker))

    workflow.add_edge("cost_optimization", "memory_retrieval")
    workflow.add_edge("memory_retrieval", "evolution_tracking")
    workflow.add_edge("evolution_tracking", END)

    workflow.set_entry_point("cost_optimization")

    return workflow.compile()


async def analyze_market(
    service: MemoryRetrievalService,
    market_id: Optional[str],
    candidate_agents: Sequence[str],
    agent_signals: Optional[Sequence[AgentSignal]] = None,
    config: Optional[EngineConfig] = None,
    metrics: Optional[MemoryMetricsCollector] = None
) -> AnalysisState:
    """
    Convenience function to run one market through the full graph.

    Returns:
        Final state with selected agents, memory context and evolution events
    """
    graph = build_memory_graph(service, config=config, metrics=metrics)
    initial_state = create_initial_state(market_id, candidate_agents, agent_signals)
    return await graph.ainvoke(initial_state)
