"""
Health check endpoints for the prediction agents service.
Implements liveness, readiness, and health probes.

Readiness reflects memory-retrieval alert thresholds. The memory system
degrades gracefully, so a critical alert reports "degraded" instead of
taking the service out of rotation.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from config import EngineConfig, get_engine_config
from memory.metrics import MemoryMetricsCollector
from utils.timezone import now_est_iso

SERVICE_NAME = "prediction_agents"
SERVICE_VERSION = "0.1.0"

router = APIRouter(tags=["health"])


def get_memory_metrics(request: Request) -> MemoryMetricsCollector:
    """Memory metrics collector attached to the running app."""
    return request.app.state.memory_metrics


def get_config(request: Request) -> EngineConfig:
    return getattr(request.app.state, "engine_config", None) or get_engine_config()


@router.get("/health")
async def health_check(
    metrics: MemoryMetricsCollector = Depends(get_memory_metrics),
    config: EngineConfig = Depends(get_config)
) -> Dict[str, Any]:
    """
    Health check endpoint.
    Returns service status with memory system and cost settings.
    """
    retrieval = metrics.get_retrieval_metrics()
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": now_est_iso(),
        "version": SERVICE_VERSION,
        "memory_system": {
            "enabled": config.memory_system.enabled,
            "max_signals_per_agent": config.memory_system.max_signals_per_agent,
            "query_timeout_ms": config.memory_system.query_timeout_ms,
            "total_retrievals": retrieval["total_retrievals"],
            "error_rate": retrieval["error_rate"],
        },
        "cost_optimization": {
            "enabled": config.cost_optimization.skip_low_impact_agents,
            "max_cost_per_analysis": config.cost_optimization.max_cost_per_analysis,
        },
    }


@router.get("/ready")
async def readiness_check(metrics: MemoryMetricsCollector = Depends(get_memory_metrics)) -> Dict[str, Any]:
    """
    Readiness check endpoint.
    Reports "degraded" when a critical memory alert is active.
    """
    thresholds = metrics.check_alert_thresholds()
    return {
        "status": "ready" if thresholds["healthy"] else "degraded",
        "service": SERVICE_NAME,
        "timestamp": now_est_iso(),
        "alerts": thresholds["alerts"],
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """
    Liveness probe endpoint.
    Simple check to verify process is alive.
    """
    return {
        "status": "alive",
        "service": SERVICE_NAME,
        "timestamp": now_est_iso()
    }
