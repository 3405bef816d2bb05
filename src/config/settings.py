"""
Engine Configuration for the prediction agents service

Centralizes memory-system and cost-optimization settings with sensible defaults.
Values are read from the environment when the config object is created.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


@dataclass(frozen=True)
class MemorySystemConfig:
    """
    Agent memory system configuration.

    Environment Variables:
        MEMORY_SYSTEM_ENABLED: Feature flag for memory retrieval (default: false)
        MEMORY_SYSTEM_MAX_SIGNALS_PER_AGENT: Signals retrieved per agent, 1-10 (default: 3)
        MEMORY_SYSTEM_QUERY_TIMEOUT_MS: Per-query timeout in ms (default: 5000)
        MEMORY_SYSTEM_RETRY_ATTEMPTS: Attempts for retryable errors, 0-5 (default: 3)
    """

    enabled: bool = field(default_factory=lambda: _env_bool("MEMORY_SYSTEM_ENABLED"))
    max_signals_per_agent: int = field(
        default_factory=lambda: int(os.getenv("MEMORY_SYSTEM_MAX_SIGNALS_PER_AGENT", "3"))
    )
    query_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("MEMORY_SYSTEM_QUERY_TIMEOUT_MS", "5000"))
    )
    retry_attempts: int = field(
        default_factory=lambda: int(os.getenv("MEMORY_SYSTEM_RETRY_ATTEMPTS", "3"))
    )

    def __post_init__(self):
        if not 1 <= self.max_signals_per_agent <= 10:
            raise ValueError(
                f"max_signals_per_agent must be between 1 and 10, got {self.max_signals_per_agent}"
            )
        if self.query_timeout_ms <= 0:
            raise ValueError(f"query_timeout_ms must be positive, got {self.query_timeout_ms}")
        if not 0 <= self.retry_attempts <= 5:
            raise ValueError(f"retry_attempts must be between 0 and 5, got {self.retry_attempts}")

    @property
    def query_timeout_secs(self) -> float:
        return self.query_timeout_ms / 1000.0


@dataclass(frozen=True)
class CostOptimizationConfig:
    """
    Per-analysis budget configuration.

    Environment Variables:
        COST_OPTIMIZATION_MAX_COST_PER_ANALYSIS: Budget ceiling in USD (default: 2.0)
        COST_OPTIMIZATION_SKIP_LOW_IMPACT_AGENTS: Enable budget pruning (default: false)
    """

    max_cost_per_analysis: float = field(
        default_factory=lambda: float(os.getenv("COST_OPTIMIZATION_MAX_COST_PER_ANALYSIS", "2.0"))
    )
    skip_low_impact_agents: bool = field(
        default_factory=lambda: _env_bool("COST_OPTIMIZATION_SKIP_LOW_IMPACT_AGENTS")
    )

    def __post_init__(self):
        if self.max_cost_per_analysis <= 0:
            raise ValueError(
                f"max_cost_per_analysis must be positive, got {self.max_cost_per_analysis}"
            )


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration."""

    memory_system: MemorySystemConfig = field(default_factory=MemorySystemConfig)
    cost_optimization: CostOptimizationConfig = field(default_factory=CostOptimizationConfig)


# Singleton config instance
_config: Optional[EngineConfig] = None


def get_engine_config() -> EngineConfig:
    """Get the engine configuration singleton."""
    global _config
    if _config is None:
        _config = EngineConfig()
    return _config


def reset_engine_config() -> None:
    """Drop the cached singleton so the next call re-reads the environment."""
    global _config
    _config = None
