"""Engine configuration"""

from .settings import (
    CostOptimizationConfig,
    EngineConfig,
    MemorySystemConfig,
    get_engine_config,
    reset_engine_config,
)

__all__ = [
    "CostOptimizationConfig",
    "EngineConfig",
    "MemorySystemConfig",
    "get_engine_config",
    "reset_engine_config",
]
