"""
Memory Retrieval Service

Retrieves each agent's own prior signals for a market so that agents can
reason about how their view has evolved.

Guarantees:
    - Each store query is bounded by a timeout (default 5s); a timed-out query
      is cancelled and never retried
    - Connection and rate-limit failures are retried with exponential backoff
    - The public methods never raise: any failure degrades to an empty context
    - When fetching for many agents, one agent's failure never affects another
"""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .errors import RetrievalError, RetrievalErrorKind, classify_error
from .metrics import MemoryMetricsCollector, calculate_context_size
from .retry import RetryPolicy
from .store import SignalStore
from .types import VALID_DIRECTIONS, AgentMemoryContext, HistoricalSignal, normalize_direction

MAX_SIGNALS_LIMIT = 5
DEFAULT_SIGNALS_LIMIT = 3
DEFAULT_QUERY_TIMEOUT_SECS = 5.0

REQUIRED_FIELDS = ("agent_name", "market_id", "direction")


def _parse_json_field(value: Any, expected: type, field_name: str) -> Any:
    """Accept native structures or JSON text; anything malformed becomes empty."""
    if value is None or value == "":
        return expected()
    if isinstance(value, expected):
        return value
    if isinstance(value, (str, bytes)):
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"[MemoryRetrieval] Failed to parse {field_name}: {e}")
            return expected()
        if isinstance(parsed, expected):
            return parsed
    logger.warning(f"[MemoryRetrieval] Unexpected {field_name} type: {type(value).__name__}")
    return expected()


def _unit_interval_or_none(row: Dict[str, Any], name: str) -> Optional[str]:
    """Validation error message if row[name] is present and outside [0, 1]."""
    value = row.get(name)
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return f"non-numeric {name}: {value!r}"
    if not 0.0 <= number <= 1.0:
        return f"{name} out of range: {number}"
    return None


def validate_signal_row(row: Dict[str, Any]) -> Optional[str]:
    """
    Check a raw storage row.

    Returns:
        None if the row is valid, otherwise a reason string
    """
    missing = [name for name in REQUIRED_FIELDS if not row.get(name)]
    if missing:
        return f"missing required fields: {', '.join(missing)}"

    for name in ("fair_probability", "confidence"):
        problem = _unit_interval_or_none(row, name)
        if problem:
            return problem

    if str(row["direction"]).upper() not in VALID_DIRECTIONS:
        return f"invalid direction: {row['direction']!r}"

    return None


def row_to_historical_signal(row: Dict[str, Any]) -> HistoricalSignal:
    """Normalize a validated storage row into a HistoricalSignal."""
    created_at = row.get("created_at")
    if isinstance(created_at, datetime):
        timestamp = created_at
    elif created_at:
        timestamp = datetime.fromisoformat(str(created_at).replace("Z", "+00:00"))
    else:
        timestamp = datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    drivers = _parse_json_field(row.get("key_drivers"), list, "key_drivers")
    metadata = _parse_json_field(row.get("metadata"), dict, "metadata")

    return HistoricalSignal(
        agent_name=row["agent_name"],
        market_id=row["market_id"],
        timestamp=timestamp,
        direction=normalize_direction(row["direction"]),
        fair_probability=float(row.get("fair_probability") or 0.0),
        confidence=float(row.get("confidence") or 0.0),
        key_drivers=tuple(str(d) for d in drivers),
        metadata=metadata,
    )


class MemoryRetrievalService:
    """
    Retrieves agent memory contexts from a signal store.

    Usage:
        service = MemoryRetrievalService(store)
        memory = await service.get_agent_memory("momentum", "0xabc")
        memories = await service.get_all_agent_memories("0xabc", ["momentum", "tail_risk"])
    """

    def __init__(
        self,
        store: SignalStore,
        retry_policy: Optional[RetryPolicy] = None,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT_SECS,
        metrics: Optional[MemoryMetricsCollector] = None
    ):
        """
        Args:
            store: Storage collaborator returning raw signal rows
            retry_policy: Backoff policy for retryable failures
            query_timeout: Per-query timeout in seconds
            metrics: Collector receiving latency and outcome metrics
        """
        self.store = store
        self.retry_policy = retry_policy or RetryPolicy()
        self.query_timeout = query_timeout
        self.metrics = metrics

    @classmethod
    def from_config(cls, store: SignalStore, memory_config, metrics=None) -> "MemoryRetrievalService":
        """Build a service from a MemorySystemConfig."""
        return cls(
            store,
            retry_policy=RetryPolicy.from_attempts(memory_config.retry_attempts),
            query_timeout=memory_config.query_timeout_secs,
            metrics=metrics,
        )

    async def get_agent_memory(
        self,
        agent_name: str,
        market_id: str,
        limit: int = DEFAULT_SIGNALS_LIMIT
    ) -> AgentMemoryContext:
        """
        Retrieve an agent's most recent signals for a market.

        Never raises; on any failure an empty context is returned.

        Args:
            agent_name: Name of the agent
            market_id: Market condition ID
            limit: Maximum signals to return (capped at 5)

        Returns:
            AgentMemoryContext (most recent signal first)
        """
        effective_limit = max(1, min(limit, MAX_SIGNALS_LIMIT))
        start = time.perf_counter()

        try:
            rows = await self._query_with_retry(agent_name, market_id, effective_limit)
            signals = self._transform_rows(rows, agent_name, market_id)
        except RetrievalError as e:
            self._record_failure(start, agent_name, market_id, e)
            logger.error(
                f"[MemoryRetrieval] {e.kind.value} for {agent_name}@{market_id} "
                f"after {e.attempts} attempt(s): {e.message}"
            )
            return AgentMemoryContext.empty(agent_name, market_id)
        except Exception as e:
            error = RetrievalError(RetrievalErrorKind.UNKNOWN_ERROR, str(e), cause=e)
            self._record_failure(start, agent_name, market_id, error)
            logger.exception(f"[MemoryRetrieval] Unexpected error for {agent_name}@{market_id}: {e}")
            return AgentMemoryContext.empty(agent_name, market_id)

        context = AgentMemoryContext(
            agent_name=agent_name,
            market_id=market_id,
            historical_signals=tuple(signals[:effective_limit]),
        )

        if self.metrics is not None:
            self.metrics.record_retrieval(
                duration_ms=(time.perf_counter() - start) * 1000,
                success=True,
                market_id=market_id,
                agent_name=agent_name,
                signal_count=len(context.historical_signals),
                context_size=calculate_context_size(context),
            )

        return context

    async def get_all_agent_memories(
        self,
        market_id: str,
        agent_names: Sequence[str],
        limit: int = DEFAULT_SIGNALS_LIMIT
    ) -> Dict[str, AgentMemoryContext]:
        """
        Retrieve memory for many agents concurrently.

        Each agent's task is isolated: a failure for one agent yields an empty
        context for that agent only.

        Returns:
            Dict of agent name -> AgentMemoryContext
        """
        async def _isolated(agent_name: str) -> AgentMemoryContext:
            try:
                return await self.get_agent_memory(agent_name, market_id, limit)
            except Exception as e:
                logger.error(f"[MemoryRetrieval] Isolated failure for {agent_name}@{market_id}: {e}")
                return AgentMemoryContext.empty(agent_name, market_id)

        names = list(dict.fromkeys(agent_names))
        contexts = await asyncio.gather(*(_isolated(name) for name in names))
        return dict(zip(names, contexts))

    async def _fetch_classified(self, agent_name: str, market_id: str, limit: int) -> Any:
        """Store call whose failures surface as RetrievalError, never as a bare TimeoutError."""
        try:
            return await self.store.fetch_recent_signals(agent_name, market_id, limit)
        except RetrievalError:
            raise
        except Exception as e:
            raise RetrievalError(classify_error(e), str(e) or type(e).__name__, cause=e) from e

    async def _query_once(self, agent_name: str, market_id: str, limit: int) -> List[Dict[str, Any]]:
        """One store query, bounded by the timeout and classified on failure."""
        try:
            rows = await asyncio.wait_for(
                self._fetch_classified(agent_name, market_id, limit),
                timeout=self.query_timeout,
            )
        except asyncio.TimeoutError:
            # Only the deadline above can reach here
            raise RetrievalError(
                RetrievalErrorKind.TIMEOUT_ERROR,
                f"Query exceeded {self.query_timeout:.1f}s timeout",
            ) from None

        if rows is None:
            return []
        if not isinstance(rows, list):
            raise RetrievalError(
                RetrievalErrorKind.DATA_CORRUPTION_ERROR,
                f"Store returned {type(rows).__name__}, expected list",
            )
        return rows

    async def _query_with_retry(self, agent_name: str, market_id: str, limit: int) -> List[Dict[str, Any]]:
        attempts = 0
        try:
            async for attempt in self.retry_policy.retrying(f"{agent_name}@{market_id}"):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    return await self._query_once(agent_name, market_id, limit)
        except RetrievalError as e:
            e.attempts = attempts
            raise
        return []

    def _transform_rows(self, rows: List[Any], agent_name: str, market_id: str) -> List[HistoricalSignal]:
        """Validate and normalize rows; invalid rows are dropped, not fatal."""
        start = time.perf_counter()
        signals: List[HistoricalSignal] = []

        for row in rows:
            if not isinstance(row, dict):
                logger.warning(f"[MemoryRetrieval] Dropping non-mapping row: {type(row).__name__}")
                continue
            problem = validate_signal_row(row)
            if problem:
                logger.warning(f"[MemoryRetrieval] Dropping signal for {agent_name}@{market_id}: {problem}")
                continue
            try:
                signals.append(row_to_historical_signal(row))
            except (TypeError, ValueError) as e:
                logger.warning(f"[MemoryRetrieval] Dropping malformed signal for {agent_name}@{market_id}: {e}")

        if self.metrics is not None:
            self.metrics.record_validation(
                duration_ms=(time.perf_counter() - start) * 1000,
                total_signals=len(rows),
                valid_signals=len(signals),
                market_id=market_id,
                agent_name=agent_name,
            )
        return signals

    def _record_failure(self, start: float, agent_name: str, market_id: str, error: RetrievalError) -> None:
        if self.metrics is None:
            return
        self.metrics.record_retrieval(
            duration_ms=(time.perf_counter() - start) * 1000,
            success=False,
            market_id=market_id,
            agent_name=agent_name,
            error={"type": error.kind.value, "message": error.message, "attempts": error.attempts},
            timeout=error.kind == RetrievalErrorKind.TIMEOUT_ERROR,
        )
