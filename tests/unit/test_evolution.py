"""
Unit tests for EvolutionTracker

Tests each event type, thresholds, driver normalization and event logging
"""
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from memory.evolution import (
    EvolutionEventType,
    EvolutionTracker,
    create_evolution_tracker,
    driver_overlap,
    log_evolution_events,
)
from memory.metrics import MemoryMetricsCollector


def _types(events):
    return [e.type for e in events]


def test_no_history_no_events(new_signal):
    assert EvolutionTracker().track_evolution(new_signal, []) == []


def test_identical_signal_no_events(new_signal, historical_signal):
    """Test case/whitespace-only driver differences are not an evolution"""
    assert EvolutionTracker().track_evolution(new_signal, [historical_signal]) == []


def test_direction_change(new_signal, historical_signal):
    signal = replace(new_signal, direction="NO")

    events = EvolutionTracker().track_evolution(signal, [historical_signal])

    assert _types(events) == [EvolutionEventType.DIRECTION_CHANGE]
    event = events[0]
    assert event.magnitude == 1.0
    assert event.previous_value == "YES"
    assert event.current_value == "NO"
    assert event.description == "Direction changed from YES to NO"
    assert event.market_id == "0xmarket"


def test_legacy_direction_not_a_change(new_signal, historical_signal):
    signal = replace(new_signal, direction="LONG_YES")
    assert EvolutionTracker().track_evolution(signal, [historical_signal]) == []


def test_probability_shift(new_signal, historical_signal):
    """Test a 15 point move emits a shift described as 15.0%"""
    signal = replace(new_signal, fair_probability=0.75)

    events = EvolutionTracker().track_evolution(signal, [historical_signal])

    assert _types(events) == [EvolutionEventType.PROBABILITY_SHIFT]
    assert events[0].magnitude == pytest.approx(0.15)
    assert events[0].description == "Fair probability shifted by 15.0%"


def test_probability_threshold_is_strict(new_signal, historical_signal):
    previous = replace(historical_signal, fair_probability=0.5)
    signal = replace(new_signal, fair_probability=0.6)
    assert EvolutionTracker().track_evolution(signal, [previous]) == []


def test_confidence_change(new_signal, historical_signal):
    signal = replace(new_signal, confidence=0.4)

    events = EvolutionTracker().track_evolution(signal, [historical_signal])

    assert _types(events) == [EvolutionEventType.CONFIDENCE_CHANGE]
    assert events[0].magnitude == pytest.approx(0.3)


def test_confidence_threshold_is_strict(new_signal, historical_signal):
    # 0.45 - 0.25 is exactly 0.2 in binary floating point
    previous = replace(historical_signal, confidence=0.25)
    signal = replace(new_signal, confidence=0.45)
    assert EvolutionTracker().track_evolution(signal, [previous]) == []


def test_probability_threshold_ignores_float_noise(new_signal, historical_signal):
    """Test 0.70 -> 0.80 is exactly a 10 point move and does not fire"""
    previous = replace(historical_signal, fair_probability=0.70)
    signal = replace(new_signal, fair_probability=0.80)
    assert EvolutionTracker().track_evolution(signal, [previous]) == []


def test_confidence_threshold_ignores_float_noise(new_signal, historical_signal):
    previous = replace(historical_signal, confidence=0.5)
    signal = replace(new_signal, confidence=0.7)
    assert EvolutionTracker().track_evolution(signal, [previous]) == []


def test_event_timestamp_is_signal_timestamp(new_signal, historical_signal):
    observed_at = datetime(2025, 1, 16, 9, 30, tzinfo=timezone.utc)
    signal = replace(new_signal, direction="NO", timestamp=observed_at)

    events = EvolutionTracker().track_evolution(signal, [historical_signal])

    assert events[0].timestamp == observed_at


def test_reasoning_evolution(new_signal, historical_signal):
    """Test disjoint drivers emit reasoning_evolution with magnitude 0.5"""
    signal = replace(new_signal, key_drivers=("court ruling", "turnout model"))

    events = EvolutionTracker().track_evolution(signal, [historical_signal])

    assert _types(events) == [EvolutionEventType.REASONING_EVOLUTION]
    assert events[0].magnitude == 0.5
    assert "significantly" in events[0].description


def test_half_overlap_fires(new_signal, historical_signal):
    signal = replace(new_signal, key_drivers=("polling lead", "court ruling"))
    events = EvolutionTracker().track_evolution(signal, [historical_signal])
    assert _types(events) == [EvolutionEventType.REASONING_EVOLUTION]


def test_majority_overlap_does_not_fire(new_signal, historical_signal):
    previous = replace(historical_signal, key_drivers=("a", "b", "c"))
    signal = replace(new_signal, key_drivers=("A", "b", "c", "d"))
    # overlap 3 / max(3, 4) = 0.75
    assert EvolutionTracker().track_evolution(signal, [previous]) == []


def test_driver_overlap_identical_sets():
    assert driver_overlap([], []) is None
    assert driver_overlap([" X "], ["x"]) is None
    assert driver_overlap(["a"], []) == 0.0


def test_only_most_recent_history_compared(new_signal, historical_signal):
    older = replace(historical_signal, direction="NO", fair_probability=0.1)
    assert EvolutionTracker().track_evolution(new_signal, [historical_signal, older]) == []


def test_all_events_together(new_signal, historical_signal):
    signal = replace(
        new_signal,
        direction="NO",
        fair_probability=0.3,
        confidence=0.95,
        key_drivers=("new evidence",),
    )

    events = EvolutionTracker().track_evolution(signal, [historical_signal])

    assert _types(events) == [
        EvolutionEventType.DIRECTION_CHANGE,
        EvolutionEventType.PROBABILITY_SHIFT,
        EvolutionEventType.CONFIDENCE_CHANGE,
        EvolutionEventType.REASONING_EVOLUTION,
    ]
    assert all(0.0 <= e.magnitude <= 1.0 for e in events)


def test_tracking_does_not_mutate_inputs(new_signal, historical_signal):
    history = [historical_signal]
    EvolutionTracker().track_evolution(replace(new_signal, direction="NO"), history)
    assert history == [historical_signal]


def test_events_recorded_into_metrics(new_signal, historical_signal):
    metrics = MemoryMetricsCollector()
    tracker = create_evolution_tracker(metrics=metrics)

    tracker.track_evolution(replace(new_signal, direction="NO"), [historical_signal])

    assert metrics.get_evolution_metrics()["direction_changes"] == 1


def test_log_evolution_events_forwards_all(new_signal, historical_signal):
    events = EvolutionTracker().track_evolution(
        replace(new_signal, direction="NO", fair_probability=0.9),
        [historical_signal],
    )
    sink = MagicMock()

    log_evolution_events(events, sink)

    assert sink.call_count == 2
    sink.assert_any_call(events[0])


def test_log_evolution_events_empty_is_noop():
    sink = MagicMock()
    log_evolution_events([], sink)
    sink.assert_not_called()


def test_event_to_dict(new_signal, historical_signal):
    event = EvolutionTracker().track_evolution(replace(new_signal, direction="NO"), [historical_signal])[0]
    data = event.to_dict()
    assert data["type"] == "direction_change"
    assert data["agent_name"] == "momentum"
