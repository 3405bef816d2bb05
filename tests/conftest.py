"""
Pytest fixtures for prediction agents tests

Provides reusable signal rows, stub stores and mocked components
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Union
from unittest.mock import MagicMock

import pytest

from config import CostOptimizationConfig, EngineConfig, MemorySystemConfig, reset_engine_config
from memory.metrics import MemoryMetricsCollector
from memory.retry import RetryPolicy
from memory.types import AgentSignal, HistoricalSignal

BASE_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class StubSignalStore:
    """
    In-memory SignalStore.

    `responses` is consumed one entry per call: a list of rows is returned,
    an exception is raised. When exhausted, `rows` is returned.
    """

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        responses: Optional[Sequence[Union[List[Dict[str, Any]], BaseException]]] = None,
        delay: float = 0.0,
        per_agent: Optional[Dict[str, Union[List[Dict[str, Any]], BaseException]]] = None
    ):
        self.rows = rows or []
        self.responses = list(responses or [])
        self.delay = delay
        self.per_agent = per_agent or {}
        self.calls: List[Dict[str, Any]] = []

    async def fetch_recent_signals(self, agent_name: str, market_id: str, limit: int):
        self.calls.append({"agent_name": agent_name, "market_id": market_id, "limit": limit})
        if self.delay:
            await asyncio.sleep(self.delay)

        if agent_name in self.per_agent:
            outcome = self.per_agent[agent_name]
        elif self.responses:
            outcome = self.responses.pop(0)
        else:
            outcome = self.rows

        if isinstance(outcome, BaseException):
            raise outcome
        return outcome[:limit]


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    """Each test re-reads the environment."""
    reset_engine_config()
    yield
    reset_engine_config()


@pytest.fixture
def make_signal_row():
    """Factory for raw storage rows (newest first when offset_hours grows)"""
    def _make(offset_hours: int = 0, **overrides) -> Dict[str, Any]:
        row = {
            "agent_name": "momentum",
            "market_id": "0xmarket",
            "created_at": (BASE_TIME - timedelta(hours=offset_hours)).isoformat(),
            "direction": "YES",
            "fair_probability": 0.62,
            "confidence": 0.7,
            "key_drivers": '["polling lead", "volume spike"]',
            "metadata": '{"source": "test"}',
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def stub_store_factory():
    return StubSignalStore


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    """Three attempts with no backoff delay"""
    return RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def metrics() -> MemoryMetricsCollector:
    return MemoryMetricsCollector()


@pytest.fixture
def make_engine_config():
    def _make(
        memory_enabled: bool = True,
        max_signals: int = 3,
        max_cost: float = 2.0,
        skip_low_impact: bool = True
    ) -> EngineConfig:
        return EngineConfig(
            memory_system=MemorySystemConfig(
                enabled=memory_enabled,
                max_signals_per_agent=max_signals,
                query_timeout_ms=5000,
                retry_attempts=3,
            ),
            cost_optimization=CostOptimizationConfig(
                max_cost_per_analysis=max_cost,
                skip_low_impact_agents=skip_low_impact,
            ),
        )

    return _make


@pytest.fixture
def historical_signal() -> HistoricalSignal:
    """Most recent prior signal of the momentum agent"""
    return HistoricalSignal(
        agent_name="momentum",
        market_id="0xmarket",
        direction="YES",
        fair_probability=0.60,
        confidence=0.70,
        key_drivers=("polling lead", "volume spike"),
        timestamp=BASE_TIME,
    )


@pytest.fixture
def new_signal() -> AgentSignal:
    """Fresh momentum signal identical in substance to historical_signal"""
    return AgentSignal(
        agent_name="momentum",
        direction="YES",
        fair_probability=0.60,
        confidence=0.70,
        key_drivers=("Polling lead ", "volume spike"),
        timestamp=BASE_TIME + timedelta(hours=1),
    )


@pytest.fixture
def mock_chromadb_client():
    """Mock ChromaDB client"""
    mock_client = MagicMock()
    mock_collection = MagicMock()

    mock_collection.add = MagicMock()
    mock_collection.count = MagicMock(return_value=2)
    mock_collection.get = MagicMock(return_value={
        'ids': ['momentum:0xmarket:a', 'momentum:0xmarket:b'],
        'metadatas': [
            {'agent_name': 'momentum', 'market_id': '0xmarket', 'direction': 'NO',
             'created_at': '2025-01-14T12:00:00+00:00', 'fair_probability': 0.4, 'confidence': 0.5},
            {'agent_name': 'momentum', 'market_id': '0xmarket', 'direction': 'YES',
             'created_at': '2025-01-15T12:00:00+00:00', 'fair_probability': 0.6, 'confidence': 0.7},
        ]
    })

    mock_client.get_or_create_collection = MagicMock(return_value=mock_collection)

    return mock_client
