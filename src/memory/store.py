"""
Agent Signal Store

Persistent storage for agent signals, queried by the memory retrieval service.

Features:
    - Per agent-market lookups of the most recent signals
    - Persistent storage across restarts (ChromaDB)
    - Metadata filtering on agent_name and market_id
"""

import asyncio
import json
import uuid
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import chromadb
from chromadb.config import Settings

from .types import AgentSignal


@runtime_checkable
class SignalStore(Protocol):
    """Storage collaborator consumed by MemoryRetrievalService."""

    async def fetch_recent_signals(
        self,
        agent_name: str,
        market_id: str,
        limit: int
    ) -> List[Dict[str, Any]]:
        """
        Return up to `limit` raw signal rows, newest first.

        Each row carries agent_name, market_id, created_at, direction,
        fair_probability, confidence, key_drivers and metadata.
        """
        ...


def signal_to_row(signal: AgentSignal, market_id: str) -> Dict[str, Any]:
    """Raw storage row for a signal (drivers and metadata JSON-encoded)."""
    return {
        "agent_name": signal.agent_name,
        "market_id": market_id,
        "created_at": signal.timestamp.isoformat(),
        "direction": signal.direction.value,
        "fair_probability": signal.fair_probability,
        "confidence": signal.confidence,
        "key_drivers": json.dumps(list(signal.key_drivers)),
        "metadata": json.dumps(signal.metadata, default=str),
    }


class ChromaSignalStore:
    """
    ChromaDB-backed signal store.

    Rows live in the metadata of a collection; the document holds a short
    human-readable summary so the collection stays searchable.
    """

    def __init__(
        self,
        persist_directory: str = "./chroma_data",
        collection_name: str = "agent_signals",
        client: Optional[Any] = None
    ):
        """
        Initialize ChromaDB client and collection.

        Args:
            persist_directory: Directory for persistent storage
            collection_name: Name of ChromaDB collection
            client: Pre-built chromadb client (tests, shared clients)
        """
        self.client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=Settings(anonymized_telemetry=False)
        )
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"description": "Agent signals per prediction market"}
        )

    def save_signal(self, signal: AgentSignal, market_id: str) -> str:
        """
        Store an agent signal.

        Returns:
            Generated row ID
        """
        row = signal_to_row(signal, market_id)
        row_id = f"{signal.agent_name}:{market_id}:{uuid.uuid4().hex[:12]}"
        summary = (
            f"{signal.agent_name} {row['direction']} on {market_id}: "
            f"p={signal.fair_probability:.2f} conf={signal.confidence:.2f}"
        )
        self.collection.add(documents=[summary], metadatas=[row], ids=[row_id])
        return row_id

    def _fetch(self, agent_name: str, market_id: str, limit: int) -> List[Dict[str, Any]]:
        results = self.collection.get(
            where={"$and": [{"agent_name": agent_name}, {"market_id": market_id}]},
            include=["metadatas"],
        )
        rows = [dict(m) for m in results.get("metadatas") or [] if m]
        rows.sort(key=lambda r: r.get("created_at", ""), reverse=True)
        return rows[:limit]

    async def fetch_recent_signals(
        self,
        agent_name: str,
        market_id: str,
        limit: int
    ) -> List[Dict[str, Any]]:
        # chromadb's client is blocking
        return await asyncio.to_thread(self._fetch, agent_name, market_id, limit)

    def count(self) -> int:
        """Get total number of stored signals."""
        return self.collection.count()
