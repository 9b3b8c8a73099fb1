"""Document store backends."""

from .base import DocumentStore, WriteBatch
from .memory_store import MemoryStore

__all__ = ["DocumentStore", "MemoryStore", "WriteBatch"]
