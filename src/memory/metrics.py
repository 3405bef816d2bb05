"""
Memory System Monitoring and Metrics

Collects metrics for the agent memory system:
- Retrieval latency and error/timeout rates
- Memory context sizes
- Evolution event frequency
- Audit trail of memory operations

Every history is a bounded ring buffer, so a long-running or failing analysis
loop never grows memory without limit. Collectors are created per analysis (or
per service) and passed in explicitly; there is no module-level instance.
"""

import json
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Sequence

from loguru import logger
from prometheus_client import CollectorRegistry, Counter, Histogram

DEFAULT_HISTORY_SIZE = 100

# Seconds; the 150ms and 200ms alert thresholds fall on bucket edges
LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.15, 0.2, 0.5, 1.0, 2.5, 5.0, 10.0)


@dataclass
class MemoryAuditLogEntry:
    """One memory-system operation in the audit trail."""
    operation: str  # retrieval | evolution_tracking | context_formatting | validation
    success: bool
    duration_ms: float
    timestamp: float = field(default_factory=time.time)
    market_id: Optional[str] = None
    agent_name: Optional[str] = None
    signal_count: Optional[int] = None
    context_size: Optional[int] = None
    evolution_events: Optional[int] = None
    error: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _percentile(sorted_values: Sequence[float], pct: float) -> float:
    if not sorted_values:
        return 0.0
    index = math.ceil(len(sorted_values) * pct) - 1
    return sorted_values[max(0, index)]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_context_size(context: Any) -> int:
    """Approximate size in bytes of a memory context serialized as JSON."""
    payload = context.to_dict() if hasattr(context, "to_dict") else context
    return len(json.dumps(payload, default=str).encode("utf-8"))


class MemoryMetricsCollector:
    """
    Memory system metrics collector.

    Windowed statistics (percentiles, rates, alerts) come from the ring
    buffers. Cumulative Prometheus series are kept alongside in the
    collector's own registry, which create_app() serves at /metrics.

    Args:
        history_size: Capacity of each ring buffer
        registry: Prometheus registry for this collector (a fresh one by default)
    """

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        registry: Optional[CollectorRegistry] = None
    ):
        self.history_size = history_size
        self.registry = registry if registry is not None else CollectorRegistry()
        self.retrieval_latency = Histogram(
            "memory_retrieval_duration_seconds",
            "Agent memory retrieval latency",
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )
        self.retrieval_errors = Counter(
            "memory_retrieval_errors",
            "Failed agent memory retrievals",
            ["error_type"],
            registry=self.registry,
        )
        self.retrieval_timeouts = Counter(
            "memory_retrieval_timeouts",
            "Agent memory retrievals that hit the query timeout",
            registry=self.registry,
        )
        self.evolution_event_counter = Counter(
            "memory_evolution_events",
            "Evolution events detected",
            ["event_type"],
            registry=self.registry,
        )
        self._latencies: Deque[float] = deque(maxlen=history_size)
        self._outcomes: Deque[Dict[str, Any]] = deque(maxlen=history_size)
        self._context_sizes: Deque[Dict[str, int]] = deque(maxlen=history_size)
        self._evolution_events: Deque[Any] = deque(maxlen=history_size)
        self._audit_log: Deque[MemoryAuditLogEntry] = deque(maxlen=history_size)
        self.total_analyses = 0

    def record_retrieval(
        self,
        duration_ms: float,
        success: bool,
        market_id: str,
        agent_name: Optional[str] = None,
        signal_count: Optional[int] = None,
        context_size: Optional[int] = None,
        error: Optional[Dict[str, Any]] = None,
        timeout: bool = False,
    ) -> None:
        """Record one memory retrieval operation."""
        self._latencies.append(duration_ms)
        self._outcomes.append({"success": success, "timeout": timeout})
        self.retrieval_latency.observe(duration_ms / 1000)
        if not success:
            self.retrieval_errors.labels(error_type=(error or {}).get("type", "UNKNOWN_ERROR")).inc()
        if timeout:
            self.retrieval_timeouts.inc()

        if success and signal_count is not None and context_size is not None:
            self._context_sizes.append({"signal_count": signal_count, "size_bytes": context_size})

        self._audit_log.append(MemoryAuditLogEntry(
            operation="retrieval",
            success=success,
            duration_ms=duration_ms,
            market_id=market_id,
            agent_name=agent_name,
            signal_count=signal_count,
            context_size=context_size,
            error=error,
        ))

        if success:
            logger.debug(
                f"[MemoryMetrics] Retrieval ok: {agent_name}@{market_id} "
                f"{duration_ms:.0f}ms, {signal_count} signals"
            )
        else:
            logger.error(
                f"[MemoryMetrics] Retrieval failed: {agent_name}@{market_id} "
                f"{duration_ms:.0f}ms, error={error}, timeout={timeout}"
            )

    def record_evolution_events(self, events: Sequence[Any], market_id: str, agent_name: str) -> None:
        """Record the evolution events detected for one agent signal."""
        self._evolution_events.extend(events)
        for event in events:
            self.evolution_event_counter.labels(event_type=event.type.value).inc()
        self._audit_log.append(MemoryAuditLogEntry(
            operation="evolution_tracking",
            success=True,
            duration_ms=0.0,
            market_id=market_id,
            agent_name=agent_name,
            evolution_events=len(events),
            metadata={"event_types": [e.type.value for e in events]},
        ))

    def record_context_formatting(
        self,
        duration_ms: float,
        success: bool,
        agent_name: str,
        signal_count: int,
        context_size: int,
        truncated: bool,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._audit_log.append(MemoryAuditLogEntry(
            operation="context_formatting",
            success=success,
            duration_ms=duration_ms,
            agent_name=agent_name,
            signal_count=signal_count,
            context_size=context_size,
            error=error,
            metadata={"truncated": truncated},
        ))

    def record_validation(
        self,
        duration_ms: float,
        total_signals: int,
        valid_signals: int,
        market_id: str,
        agent_name: str,
    ) -> None:
        invalid = total_signals - valid_signals
        rate = (valid_signals / total_signals) * 100 if total_signals else 100.0
        self._audit_log.append(MemoryAuditLogEntry(
            operation="validation",
            success=True,
            duration_ms=duration_ms,
            market_id=market_id,
            agent_name=agent_name,
            metadata={
                "total_signals": total_signals,
                "valid_signals": valid_signals,
                "invalid_signals": invalid,
                "validation_rate": rate,
            },
        ))
        if invalid > 0:
            logger.warning(
                f"[MemoryMetrics] Dropped {invalid}/{total_signals} invalid signals "
                f"for {agent_name}@{market_id}"
            )

    def increment_analysis_count(self) -> None:
        self.total_analyses += 1

    def get_retrieval_metrics(self) -> Dict[str, Any]:
        """Latency percentiles plus error and timeout rates over the retained window."""
        total = len(self._latencies)
        if total == 0:
            return {
                "latency": {"min": 0, "max": 0, "mean": 0, "p50": 0, "p95": 0, "p99": 0},
                "total_retrievals": 0,
                "successful_retrievals": 0,
                "failed_retrievals": 0,
                "error_rate": 0.0,
                "timeouts": 0,
                "timeout_rate": 0.0,
            }

        latencies = sorted(self._latencies)
        failed = sum(1 for o in self._outcomes if not o["success"])
        timeouts = sum(1 for o in self._outcomes if o["timeout"])

        return {
            "latency": {
                "min": latencies[0],
                "max": latencies[-1],
                "mean": _mean(latencies),
                "p50": _percentile(latencies, 0.5),
                "p95": _percentile(latencies, 0.95),
                "p99": _percentile(latencies, 0.99),
            },
            "total_retrievals": total,
            "successful_retrievals": total - failed,
            "failed_retrievals": failed,
            "error_rate": failed / total * 100,
            "timeouts": timeouts,
            "timeout_rate": timeouts / total * 100,
        }

    def get_context_size_metrics(self) -> Dict[str, Any]:
        counts = sorted(c["signal_count"] for c in self._context_sizes)
        sizes = sorted(c["size_bytes"] for c in self._context_sizes)
        with_history = sum(1 for c in counts if c > 0)

        return {
            "signal_counts": {
                "min": counts[0] if counts else 0,
                "max": counts[-1] if counts else 0,
                "mean": _mean(counts),
                "median": _percentile(counts, 0.5),
            },
            "context_sizes": {
                "min": sizes[0] if sizes else 0,
                "max": sizes[-1] if sizes else 0,
                "mean": _mean(sizes),
                "median": _percentile(sizes, 0.5),
            },
            "agents_with_history": with_history,
            "agents_without_history": len(counts) - with_history,
            "history_rate": with_history / len(counts) * 100 if counts else 0.0,
        }

    def get_evolution_metrics(self) -> Dict[str, Any]:
        by_type: Dict[str, List[float]] = {}
        for event in self._evolution_events:
            by_type.setdefault(event.type.value, []).append(event.magnitude)

        analyses = self.total_analyses or 1
        counts = {t: len(by_type.get(t, [])) for t in (
            "direction_change", "probability_shift", "confidence_change", "reasoning_evolution"
        )}

        return {
            "total_events": len(self._evolution_events),
            "direction_changes": counts["direction_change"],
            "probability_shifts": counts["probability_shift"],
            "confidence_changes": counts["confidence_change"],
            "reasoning_evolutions": counts["reasoning_evolution"],
            "direction_change_rate": counts["direction_change"] / analyses,
            "probability_shift_rate": counts["probability_shift"] / analyses,
            "confidence_change_rate": counts["confidence_change"] / analyses,
            "reasoning_evolution_rate": counts["reasoning_evolution"] / analyses,
            "average_probability_shift_magnitude": _mean(by_type.get("probability_shift", [])),
            "average_confidence_change_magnitude": _mean(by_type.get("confidence_change", [])),
        }

    def get_audit_log(
        self,
        operation: Optional[str] = None,
        market_id: Optional[str] = None,
        agent_name: Optional[str] = None,
    ) -> List[MemoryAuditLogEntry]:
        """Audit entries, optionally filtered by operation, market or agent."""
        return [
            entry for entry in self._audit_log
            if (operation is None or entry.operation == operation)
            and (market_id is None or entry.market_id == market_id)
            and (agent_name is None or entry.agent_name == agent_name)
        ]

    def get_metrics_summary(self) -> Dict[str, Any]:
        return {
            "retrieval": self.get_retrieval_metrics(),
            "context_size": self.get_context_size_metrics(),
            "evolution": self.get_evolution_metrics(),
            "audit_log_size": len(self._audit_log),
        }

    def check_alert_thresholds(self) -> Dict[str, Any]:
        """
        Compare retrieval metrics to alert thresholds.

        Returns:
            {"alerts": [{"severity", "message"}], "healthy": bool}
            healthy is False only when a critical alert fires.
        """
        metrics = self.get_retrieval_metrics()
        alerts: List[Dict[str, str]] = []

        def _check(value: float, critical: float, warning: float, label: str, unit: str) -> None:
            if value > critical:
                alerts.append({
                    "severity": "critical",
                    "message": f"Memory retrieval {label} is {value:.1f}{unit} (threshold: {critical:g}{unit})",
                })
            elif value > warning:
                alerts.append({
                    "severity": "warning",
                    "message": f"Memory retrieval {label} is {value:.1f}{unit} (threshold: {warning:g}{unit})",
                })

        _check(metrics["error_rate"], 5, 2, "error rate", "%")
        _check(metrics["latency"]["p95"], 200, 150, "p95 latency", "ms")
        _check(metrics["timeout_rate"], 10, 5, "timeout rate", "%")

        return {
            "alerts": alerts,
            "healthy": not any(a["severity"] == "critical" for a in alerts),
        }

    def reset(self) -> None:
        """Clear the windowed histories (Prometheus series stay cumulative)."""
        self._latencies.clear()
        self._outcomes.clear()
        self._context_sizes.clear()
        self._evolution_events.clear()
        self._audit_log.clear()
        self.total_analyses = 0
