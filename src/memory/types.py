"""
Agent Memory - Signal and Context Types

Defines the signal shapes exchanged between agents, the signal store and the
evolution tracker.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Direction(str, Enum):
    """Normalized agent stance on a binary market."""
    YES = "YES"
    NO = "NO"
    NEUTRAL = "NEUTRAL"


# Legacy trade-style directions still present in older stored rows
LEGACY_DIRECTIONS: Dict[str, Direction] = {
    "LONG_YES": Direction.YES,
    "LONG_NO": Direction.NO,
    "NO_TRADE": Direction.NEUTRAL,
}

VALID_DIRECTIONS = frozenset([d.value for d in Direction] + list(LEGACY_DIRECTIONS))


def normalize_direction(value: Any) -> Direction:
    """
    Map any accepted direction spelling to YES/NO/NEUTRAL.

    Raises:
        ValueError: If the value is not in the accepted vocabulary
    """
    if isinstance(value, Direction):
        return value
    raw = str(value).strip().upper()
    if raw in LEGACY_DIRECTIONS:
        return LEGACY_DIRECTIONS[raw]
    try:
        return Direction(raw)
    except ValueError:
        raise ValueError(f"Invalid direction: {value!r}") from None


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


@dataclass(frozen=True)
class AgentSignal:
    """
    Structured output of one agent invocation.

    Attributes:
        agent_name: Agent that produced the signal
        direction: Normalized stance
        fair_probability: Agent's estimate of the YES outcome probability (0-1)
        confidence: Agent's confidence in its estimate (0-1)
        key_drivers: Ordered reasoning drivers
        risk_factors: Optional risk notes
        metadata: Free-form agent metadata
        timestamp: Creation time
    """
    agent_name: str
    direction: Direction
    fair_probability: float
    confidence: float
    key_drivers: Tuple[str, ...] = ()
    risk_factors: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "direction", normalize_direction(self.direction))
        object.__setattr__(self, "key_drivers", tuple(self.key_drivers))
        object.__setattr__(self, "risk_factors", tuple(self.risk_factors))
        _check_unit_interval("fair_probability", self.fair_probability)
        _check_unit_interval("confidence", self.confidence)


@dataclass(frozen=True)
class HistoricalSignal(AgentSignal):
    """A previously persisted AgentSignal for a specific market."""
    market_id: str = ""


@dataclass(frozen=True)
class AgentMemoryContext:
    """
    An agent's recent history on one market.

    historical_signals is ordered most recent first.
    """
    agent_name: str
    market_id: str
    historical_signals: Tuple[HistoricalSignal, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "historical_signals", tuple(self.historical_signals))

    @property
    def has_history(self) -> bool:
        return len(self.historical_signals) > 0

    @property
    def most_recent(self) -> Optional[HistoricalSignal]:
        return self.historical_signals[0] if self.historical_signals else None

    @classmethod
    def empty(cls, agent_name: str, market_id: str) -> "AgentMemoryContext":
        return cls(agent_name=agent_name, market_id=market_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_name": self.agent_name,
            "market_id": self.market_id,
            "has_history": self.has_history,
            "historical_signals": [
                {
                    "agent_name": s.agent_name,
                    "market_id": s.market_id,
                    "timestamp": s.timestamp.isoformat(),
                    "direction": s.direction.value,
                    "fair_probability": s.fair_probability,
                    "confidence": s.confidence,
                    "key_drivers": list(s.key_drivers),
                    "metadata": s.metadata,
                }
                for s in self.historical_signals
            ],
        }
