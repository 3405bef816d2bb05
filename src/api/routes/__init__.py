from .costs import router as costs_router
from .health import router as health_router

__all__ = ["costs_router", "health_router"]
