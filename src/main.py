"""
Prediction Agents - Memory & Cost Service

Serves health probes and cost endpoints for the multi-agent prediction market
analysis engine.

Purpose:
- Expose memory-retrieval health (alert thresholds) for orchestration
- Decide which agents run under a per-analysis budget
- Price LLM calls across Nova, OpenAI, Anthropic and Google
"""
import os
from typing import Optional

from fastapi import FastAPI
from loguru import logger
from prometheus_client import make_asgi_app

from api.routes import costs_router, health_router
from config import EngineConfig, get_engine_config
from memory.metrics import MemoryMetricsCollector


def create_app(
    config: Optional[EngineConfig] = None,
    metrics: Optional[MemoryMetricsCollector] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Engine configuration (defaults to the environment singleton)
        metrics: Memory metrics collector shared with the retrieval service
    """
    app = FastAPI(
        title="Prediction Agents - Memory & Cost Service",
        description="Agent memory health and cost-constrained agent selection.",
        version="0.1.0"
    )
    app.state.engine_config = config or get_engine_config()
    app.state.memory_metrics = metrics or MemoryMetricsCollector()

    app.include_router(health_router)
    app.include_router(costs_router)
    app.mount("/metrics", make_asgi_app(registry=app.state.memory_metrics.registry))

    logger.info(
        f"App created: memory_enabled={app.state.engine_config.memory_system.enabled}, "
        f"max_cost={app.state.engine_config.cost_optimization.max_cost_per_analysis}"
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8007")))
