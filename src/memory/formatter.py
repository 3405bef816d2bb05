"""
Memory Context Formatter

Renders an agent's historical signals as prompt text, oldest first, so the
agent reads its own view evolving toward the present.
"""

import json
import time
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from utils.timezone import format_timestamp

from .metrics import MemoryMetricsCollector
from .types import AgentMemoryContext, HistoricalSignal

NO_HISTORY_TEXT = "No previous analysis available for this market."
TRUNCATION_NOTICE = "[Additional signals truncated for brevity]"


@dataclass(frozen=True)
class FormattedMemoryContext:
    text: str
    signal_count: int
    truncated: bool


def _percentage(value: float) -> str:
    return f"{value * 100:.1f}%"


def format_signal(signal: HistoricalSignal, include_metadata: bool = False) -> str:
    """Format one historical signal as an indented block."""
    lines = [
        f"Analysis from {format_timestamp(signal.timestamp)}:",
        f"  Direction: {signal.direction.value}",
        f"  Fair Probability: {_percentage(signal.fair_probability)}",
        f"  Confidence: {_percentage(signal.confidence)}",
    ]
    if signal.key_drivers:
        lines.append("  Key Drivers:")
        lines.extend(f"    • {driver}" for driver in signal.key_drivers)
    if include_metadata and signal.metadata:
        lines.append(f"  Metadata: {json.dumps(signal.metadata, indent=2, default=str)}")
    return "\n".join(lines) + "\n"


def format_memory_context(
    context: AgentMemoryContext,
    max_length: int = 1000,
    include_metadata: bool = False,
    metrics: Optional[MemoryMetricsCollector] = None
) -> FormattedMemoryContext:
    """
    Format agent memory context for inclusion in a prompt.

    Args:
        context: Agent memory context
        max_length: Character budget; whole signals past it are dropped
        include_metadata: Append each signal's metadata as JSON
        metrics: Optional collector for formatting metrics

    Returns:
        FormattedMemoryContext
    """
    start = time.perf_counter()

    if not context.has_history:
        result = FormattedMemoryContext(text=NO_HISTORY_TEXT, signal_count=0, truncated=False)
    else:
        ordered = sorted(context.historical_signals, key=lambda s: s.timestamp)
        count = len(ordered)
        text = f"Previous Analysis History ({count} signal{'s' if count > 1 else ''}):\n\n"
        truncated = False

        for signal in ordered:
            block = format_signal(signal, include_metadata)
            if len(text) + len(block) > max_length:
                text += f"\n{TRUNCATION_NOTICE}"
                truncated = True
                break
            text += block + "\n"

        result = FormattedMemoryContext(text=text.strip(), signal_count=count, truncated=truncated)

    if result.truncated:
        logger.debug(f"[MemoryFormatter] Truncated memory context for {context.agent_name}")

    if metrics is not None:
        metrics.record_context_formatting(
            duration_ms=(time.perf_counter() - start) * 1000,
            success=True,
            agent_name=context.agent_name,
            signal_count=result.signal_count,
            context_size=len(result.text.encode("utf-8")),
            truncated=result.truncated,
        )

    return result
