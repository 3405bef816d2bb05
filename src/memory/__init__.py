"""Agent memory: signal retrieval, evolution tracking and prompt formatting"""

from .errors import RetrievalError, RetrievalErrorKind, classify_error, is_retryable
from .evolution import (
    EvolutionEvent,
    EvolutionEventType,
    EvolutionTracker,
    create_evolution_tracker,
    log_evolution_events,
)
from .formatter import FormattedMemoryContext, format_memory_context
from .metrics import MemoryMetricsCollector
from .retrieval import MemoryRetrievalService
from .retry import RetryPolicy
from .store import ChromaSignalStore, SignalStore
from .types import AgentMemoryContext, AgentSignal, Direction, HistoricalSignal, normalize_direction

__all__ = [
    "AgentMemoryContext",
    "AgentSignal",
    "ChromaSignalStore",
    "Direction",
    "EvolutionEvent",
    "EvolutionEventType",
    "EvolutionTracker",
    "FormattedMemoryContext",
    "HistoricalSignal",
    "MemoryMetricsCollector",
    "MemoryRetrievalService",
    "RetrievalError",
    "RetrievalErrorKind",
    "RetryPolicy",
    "SignalStore",
    "classify_error",
    "create_evolution_tracker",
    "format_memory_context",
    "is_retryable",
    "log_evolution_events",
    "normalize_direction",
]
