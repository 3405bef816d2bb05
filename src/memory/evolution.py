"""
Evolution Tracker

Compares a new agent signal with that agent's most recent prior signal on the
same market and reports what changed.

Events:
    - direction_change: stance flipped (magnitude 1.0)
    - probability_shift: fair probability moved more than 10 points
    - confidence_change: confidence moved more than 20 points
    - reasoning_evolution: key drivers overlap by half or less
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence

from loguru import logger

from .types import AgentSignal, HistoricalSignal

PROBABILITY_SHIFT_THRESHOLD = 0.10
CONFIDENCE_CHANGE_THRESHOLD = 0.20
REASONING_OVERLAP_THRESHOLD = 0.5
REASONING_EVOLUTION_MAGNITUDE = 0.5


class EvolutionEventType(str, Enum):
    DIRECTION_CHANGE = "direction_change"
    PROBABILITY_SHIFT = "probability_shift"
    CONFIDENCE_CHANGE = "confidence_change"
    REASONING_EVOLUTION = "reasoning_evolution"


@dataclass(frozen=True)
class EvolutionEvent:
    """A discrete change between two consecutive signals of one agent."""
    type: EvolutionEventType
    agent_name: str
    market_id: str
    previous_value: Any
    current_value: Any
    magnitude: float
    description: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "agent_name": self.agent_name,
            "market_id": self.market_id,
            "timestamp": self.timestamp.isoformat(),
            "previous_value": self.previous_value,
            "current_value": self.current_value,
            "magnitude": self.magnitude,
            "description": self.description,
        }


def _delta(current: float, previous: float) -> float:
    # Rounded so 0.70 -> 0.80 compares equal to the 0.10 threshold
    return round(abs(current - previous), 9)


def _normalized_drivers(drivers: Iterable[str]) -> FrozenSet[str]:
    return frozenset(d.strip().lower() for d in drivers)


def driver_overlap(previous: Iterable[str], current: Iterable[str]) -> Optional[float]:
    """
    Overlap ratio of two driver lists after strip/lowercase normalization.

    Returns:
        None when the normalized sets are identical (including both empty),
        otherwise |intersection| / max(|previous|, |current|)
    """
    prev_set = _normalized_drivers(previous)
    curr_set = _normalized_drivers(current)
    if prev_set == curr_set:
        return None
    return len(prev_set & curr_set) / max(len(prev_set), len(curr_set))


class EvolutionTracker:
    """
    Detects evolution events between a new signal and the latest historical one.

    The comparison is pure. When a metrics collector is supplied the detected
    events are also recorded into it.
    """

    def __init__(self, metrics=None):
        self.metrics = metrics

    def track_evolution(
        self,
        new_signal: AgentSignal,
        historical_signals: Sequence[HistoricalSignal]
    ) -> List[EvolutionEvent]:
        """
        Args:
            new_signal: Signal just produced by the agent
            historical_signals: The agent's prior signals, most recent first

        Returns:
            Detected events (empty when there is no history)
        """
        if not historical_signals:
            return []

        previous = historical_signals[0]
        market_id = previous.market_id
        agent_name = new_signal.agent_name
        observed_at = new_signal.timestamp
        events: List[EvolutionEvent] = []

        if new_signal.direction != previous.direction:
            events.append(EvolutionEvent(
                type=EvolutionEventType.DIRECTION_CHANGE,
                agent_name=agent_name,
                market_id=market_id,
                previous_value=previous.direction.value,
                current_value=new_signal.direction.value,
                magnitude=1.0,
                description=f"Direction changed from {previous.direction.value} to {new_signal.direction.value}",
                timestamp=observed_at,
            ))

        prob_delta = _delta(new_signal.fair_probability, previous.fair_probability)
        if prob_delta > PROBABILITY_SHIFT_THRESHOLD:
            events.append(EvolutionEvent(
                type=EvolutionEventType.PROBABILITY_SHIFT,
                agent_name=agent_name,
                market_id=market_id,
                previous_value=previous.fair_probability,
                current_value=new_signal.fair_probability,
                magnitude=min(prob_delta, 1.0),
                description=f"Fair probability shifted by {prob_delta * 100:.1f}%",
                timestamp=observed_at,
            ))

        conf_delta = _delta(new_signal.confidence, previous.confidence)
        if conf_delta > CONFIDENCE_CHANGE_THRESHOLD:
            events.append(EvolutionEvent(
                type=EvolutionEventType.CONFIDENCE_CHANGE,
                agent_name=agent_name,
                market_id=market_id,
                previous_value=previous.confidence,
                current_value=new_signal.confidence,
                magnitude=min(conf_delta, 1.0),
                description=f"Confidence changed by {conf_delta * 100:.1f}%",
                timestamp=observed_at,
            ))

        overlap = driver_overlap(previous.key_drivers, new_signal.key_drivers)
        if overlap is not None and overlap <= REASONING_OVERLAP_THRESHOLD:
            events.append(EvolutionEvent(
                type=EvolutionEventType.REASONING_EVOLUTION,
                agent_name=agent_name,
                market_id=market_id,
                previous_value=list(previous.key_drivers),
                current_value=list(new_signal.key_drivers),
                magnitude=REASONING_EVOLUTION_MAGNITUDE,
                description="Key drivers have evolved significantly",
                timestamp=observed_at,
            ))

        if self.metrics is not None and events:
            self.metrics.record_evolution_events(events, market_id, agent_name)

        return events


def log_evolution_events(
    events: Sequence[EvolutionEvent],
    sink: Optional[Callable[[EvolutionEvent], None]] = None
) -> None:
    """Forward every event to the sink (loguru by default)."""
    for event in events:
        if sink is not None:
            sink(event)
        else:
            logger.info(
                f"[EvolutionTracker] {event.type.value} for {event.agent_name}@{event.market_id}: "
                f"{event.description} (magnitude={event.magnitude:.2f})"
            )


def create_evolution_tracker(metrics=None) -> EvolutionTracker:
    return EvolutionTracker(metrics=metrics)
