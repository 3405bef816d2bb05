"""
Unit tests for MemoryMetricsCollector

Tests bounded histories, latency percentiles and alert thresholds
"""
import pytest

from memory.metrics import MemoryMetricsCollector, calculate_context_size
from memory.types import AgentMemoryContext


def _fail(metrics, duration_ms=10.0, timeout=False):
    metrics.record_retrieval(
        duration_ms=duration_ms,
        success=False,
        market_id="0xmarket",
        agent_name="momentum",
        error={"type": "CONNECTION_ERROR", "message": "refused"},
        timeout=timeout,
    )


def _ok(metrics, duration_ms=10.0, signal_count=2):
    metrics.record_retrieval(
        duration_ms=duration_ms,
        success=True,
        market_id="0xmarket",
        agent_name="momentum",
        signal_count=signal_count,
        context_size=100,
    )


def test_empty_metrics():
    metrics = MemoryMetricsCollector().get_retrieval_metrics()
    assert metrics["total_retrievals"] == 0
    assert metrics["error_rate"] == 0.0


def test_history_is_bounded_after_105_failures():
    """Test 105 sequential failures keep at most maxlen entries"""
    metrics = MemoryMetricsCollector(history_size=100)

    for _ in range(105):
        _fail(metrics)

    retrieval = metrics.get_retrieval_metrics()
    assert retrieval["total_retrievals"] == 100
    assert retrieval["failed_retrievals"] == 100
    assert len(metrics.get_audit_log()) == 100


def test_latency_percentiles():
    metrics = MemoryMetricsCollector()
    for ms in range(1, 101):
        _ok(metrics, duration_ms=float(ms))

    latency = metrics.get_retrieval_metrics()["latency"]
    assert latency["min"] == 1.0
    assert latency["max"] == 100.0
    assert latency["p50"] == 50.0
    assert latency["p95"] == 95.0
    assert latency["p99"] == 99.0
    assert latency["mean"] == pytest.approx(50.5)


def test_error_and_timeout_rates():
    metrics = MemoryMetricsCollector()
    for _ in range(8):
        _ok(metrics)
    _fail(metrics)
    _fail(metrics, timeout=True)

    retrieval = metrics.get_retrieval_metrics()
    assert retrieval["error_rate"] == pytest.approx(20.0)
    assert retrieval["timeouts"] == 1
    assert retrieval["timeout_rate"] == pytest.approx(10.0)


def test_healthy_without_alerts():
    metrics = MemoryMetricsCollector()
    for _ in range(10):
        _ok(metrics)

    assert metrics.check_alert_thresholds() == {"alerts": [], "healthy": True}


def test_critical_error_rate_is_unhealthy():
    metrics = MemoryMetricsCollector()
    for _ in range(9):
        _ok(metrics)
    _fail(metrics)

    result = metrics.check_alert_thresholds()
    assert result["healthy"] is False
    assert any(a["severity"] == "critical" and "error rate" in a["message"] for a in result["alerts"])


def test_warning_latency_stays_healthy():
    metrics = MemoryMetricsCollector()
    for _ in range(20):
        _ok(metrics, duration_ms=175.0)

    result = metrics.check_alert_thresholds()
    assert result["healthy"] is True
    assert [a["severity"] for a in result["alerts"]] == ["warning"]


def test_context_size_metrics():
    metrics = MemoryMetricsCollector()
    _ok(metrics, signal_count=0)
    _ok(metrics, signal_count=3)

    sizes = metrics.get_context_size_metrics()
    assert sizes["agents_with_history"] == 1
    assert sizes["agents_without_history"] == 1
    assert sizes["history_rate"] == pytest.approx(50.0)
    assert sizes["signal_counts"]["max"] == 3


def test_audit_log_filters():
    metrics = MemoryMetricsCollector()
    _ok(metrics)
    metrics.record_validation(1.0, total_signals=3, valid_signals=2, market_id="0xother", agent_name="catalyst")

    assert len(metrics.get_audit_log(operation="validation")) == 1
    assert len(metrics.get_audit_log(market_id="0xmarket")) == 1
    assert metrics.get_audit_log(agent_name="catalyst")[0].metadata["invalid_signals"] == 1


def test_reset():
    metrics = MemoryMetricsCollector()
    _fail(metrics)
    metrics.increment_analysis_count()

    metrics.reset()

    assert metrics.get_retrieval_metrics()["total_retrievals"] == 0
    assert metrics.total_analyses == 0
    assert metrics.get_metrics_summary()["audit_log_size"] == 0


def test_calculate_context_size():
    empty = calculate_context_size(AgentMemoryContext.empty("momentum", "0xmarket"))
    assert empty > 0


def test_prometheus_series_follow_retrievals():
    metrics = MemoryMetricsCollector()
    _ok(metrics, duration_ms=120.0)
    _fail(metrics)
    _fail(metrics, timeout=True)

    registry = metrics.registry
    assert registry.get_sample_value("memory_retrieval_duration_seconds_count") == 3
    assert registry.get_sample_value("memory_retrieval_duration_seconds_bucket", {"le": "0.15"}) == 3
    assert registry.get_sample_value(
        "memory_retrieval_errors_total", {"error_type": "CONNECTION_ERROR"}
    ) == 2
    assert registry.get_sample_value("memory_retrieval_timeouts_total") == 1


def test_collectors_have_separate_registries():
    first, second = MemoryMetricsCollector(), MemoryMetricsCollector()
    _fail(first)
    assert second.registry.get_sample_value("memory_retrieval_timeouts_total") == 0
    assert second.registry.get_sample_value(
        "memory_retrieval_errors_total", {"error_type": "CONNECTION_ERROR"}
    ) is None
