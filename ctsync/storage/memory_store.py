"""In-process document store with Firestore-like merge semantics."""

from __future__ import annotations

import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from ctsync.errors import StoreError
from ctsync.storage.base import DocumentStore, WriteBatch


class MemoryWriteBatch(WriteBatch):
    def __init__(self, store: "MemoryStore") -> None:
        self._store = store
        self._writes: List[Tuple[str, str, Dict[str, Any]]] = []

    def upsert(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        self._writes.append((collection, document_id, copy.deepcopy(data)))

    def commit(self) -> None:
        if len(self._writes) > self._store.max_batch_size:
            raise StoreError(
                f"Batch of {len(self._writes)} writes exceeds limit of {self._store.max_batch_size}"
            )
        self._store.apply(self._writes)
        self._writes = []

    def __len__(self) -> int:
        return len(self._writes)


class MemoryStore(DocumentStore):
    """Dictionary-backed store; commits are all-or-nothing."""

    def __init__(self, max_batch_size: int = 500, fail_on_commit: Optional[int] = None) -> None:
        self.max_batch_size = max_batch_size
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.commit_sizes: List[int] = []
        # 1-based index of a commit that should fail, for partial-failure tests.
        self.fail_on_commit = fail_on_commit

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)

    def apply(self, writes: List[Tuple[str, str, Dict[str, Any]]]) -> None:
        if self.fail_on_commit is not None and len(self.commit_sizes) + 1 == self.fail_on_commit:
            self.fail_on_commit = None
            raise StoreError("Simulated commit failure")
        for collection, document_id, data in writes:
            self.collections[collection].setdefault(document_id, {}).update(data)
        self.commit_sizes.append(len(writes))

    def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        return self.collections.get(collection, {}).get(document_id)

    def snapshot(self, ignore_fields: Tuple[str, ...] = ("updatedAt",)) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Copy of all documents, minus volatile fields."""
        return {
            name: {
                doc_id: {k: v for k, v in doc.items() if k not in ignore_fields}
                for doc_id, doc in docs.items()
            }
            for name, docs in self.collections.items()
        }
