"""Document store interface used by the write scheduler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict


class WriteBatch(ABC):
    """Accumulates merge-upserts and commits them atomically."""

    @abstractmethod
    def upsert(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        """Queue a write that only touches the supplied fields."""

    @abstractmethod
    def commit(self) -> None:
        """Apply every queued write in one atomic request."""

    @abstractmethod
    def __len__(self) -> int: ...


class DocumentStore(ABC):
    """A keyed document database with batched merge-upserts."""

    # Hard ceiling on writes per atomic batch.
    max_batch_size: int = 500

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Return a fresh, empty batch."""
