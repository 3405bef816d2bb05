"""
Prediction Agents Service API

HTTP endpoints for health probes, agent cost optimization and LLM cost
calculation.
"""

from .routes import costs_router, health_router

__all__ = ["costs_router", "health_router"]
