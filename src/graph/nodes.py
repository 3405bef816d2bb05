"""
Graph Nodes for Prediction Market Analysis

Implements the cost, memory and evolution stages of the StateGraph. Nodes are
built by factories so services and configuration are injected rather than
global.
"""

import time
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config import EngineConfig
from costs import apply_cost_optimization, create_cost_optimization_audit_entry
from memory.evolution import EvolutionEvent, EvolutionTracker, log_evolution_events
from memory.metrics import MemoryMetricsCollector
from memory.retrieval import MemoryRetrievalService

from .state import AnalysisState, audit_entry

NodeFn = Callable[[AnalysisState], Any]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def create_cost_optimization_node(config: EngineConfig) -> NodeFn:
    """
    Build the node admitting candidate agents under the per-analysis budget.

    Returns:
        Async node writing selected_agents, skipped_agents and an audit entry
    """
    async def cost_optimization_node(state: AnalysisState) -> Dict[str, Any]:
        result = apply_cost_optimization(state["candidate_agents"], config)

        if result.optimization_applied:
            logger.info(
                f"[CostOptimization] Skipped {len(result.skipped_agents)} agent(s) "
                f"for {state.get('market_id')}: {', '.join(result.skipped_agents)}"
            )

        return {
            "selected_agents": result.selected_agents,
            "skipped_agents": result.skipped_agents,
            "audit_log": [audit_entry("cost_optimization", **create_cost_optimization_audit_entry(result))],
        }

    return cost_optimization_node


def create_memory_retrieval_node(
    service: MemoryRetrievalService,
    config: EngineConfig,
    metrics: Optional[MemoryMetricsCollector] = None
) -> NodeFn:
    """
    Build the node loading each selected agent's history for the market.

    Never fails the workflow: disabled memory, a missing market ID or an
    unexpected error all produce an empty memory_context.
    """
    memory_config = config.memory_system

    async def memory_retrieval_node(state: AnalysisState) -> Dict[str, Any]:
        start = time.perf_counter()

        if not memory_config.enabled:
            return {
                "memory_context": {},
                "audit_log": [audit_entry(
                    "memory_retrieval",
                    success=True,
                    reason="Memory system disabled via feature flag",
                    duration=_elapsed_ms(start),
                )],
            }

        market_id = state.get("market_id")
        if not market_id:
            logger.warning("[MemoryRetrieval] No market ID in state, skipping memory retrieval")
            return {
                "memory_context": {},
                "audit_log": [audit_entry(
                    "memory_retrieval",
                    success=False,
                    reason="No market ID",
                    duration=_elapsed_ms(start),
                )],
            }

        agent_names = state.get("selected_agents") or []

        try:
            memory_context = await service.get_all_agent_memories(
                market_id,
                agent_names,
                memory_config.max_signals_per_agent,
            )
        except Exception as e:
            logger.error(f"[MemoryRetrieval] Failed to retrieve memory context: {e}")
            return {
                "memory_context": {},
                "audit_log": [audit_entry(
                    "memory_retrieval",
                    success=False,
                    marketId=market_id,
                    error=str(e),
                    duration=_elapsed_ms(start),
                )],
            }

        if metrics is not None:
            metrics.increment_analysis_count()

        contexts = memory_context.values()
        return {
            "memory_context": memory_context,
            "audit_log": [audit_entry(
                "memory_retrieval",
                success=True,
                marketId=market_id,
                totalAgents=len(agent_names),
                agentsWithHistory=sum(1 for ctx in contexts if ctx.has_history),
                totalSignals=sum(len(ctx.historical_signals) for ctx in contexts),
                maxSignalsPerAgent=memory_config.max_signals_per_agent,
                queryTimeoutMs=memory_config.query_timeout_ms,
                duration=_elapsed_ms(start),
            )],
        }

    return memory_retrieval_node


def create_evolution_tracking_node(
    tracker: EvolutionTracker,
    sink: Optional[Callable[[EvolutionEvent], None]] = None
) -> NodeFn:
    """Build the node comparing each new agent signal with that agent's history."""

    async def evolution_tracking_node(state: AnalysisState) -> Dict[str, Any]:
        memory_context = state.get("memory_context") or {}
        events: List[EvolutionEvent] = []

        for signal in state.get("agent_signals") or []:
            context = memory_context.get(signal.agent_name)
            if context is None or not context.has_history:
                continue
            events.extend(tracker.track_evolution(signal, context.historical_signals))

        log_evolution_events(events, sink)

        counts: Dict[str, int] = {}
        for event in events:
            counts[event.type.value] = counts.get(event.type.value, 0) + 1

        return {
            "evolution_events": events,
            "audit_log": [audit_entry(
                "evolution_tracking",
                totalEvents=len(events),
                eventsByType=counts,
                agentsTracked=len(state.get("agent_signals") or []),
            )],
        }

    return evolution_tracking_node
