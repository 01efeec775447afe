# triage/DB/api.py
from __future__ import annotations
from typing import Callable, Optional, Protocol

from ..models import Snapshot

OnChange = Callable[[Snapshot], None]


class StoreError(RuntimeError):
    """The snapshot store could not be reached or refused the operation."""


class SnapshotStore(Protocol):
    # Read
    def load(self, dataset_id: str) -> Optional[Snapshot]: ...
    # Write
    def save(self, dataset_id: str, snapshot: Snapshot) -> None: ...
    # Change notifications; returns an unsubscribe callable
    def subscribe(self, dataset_id: str, on_change: OnChange) -> Callable[[], None]: ...
    # Deliver changes written by other processes to subscribers; True if any
    def poll(self, dataset_id: str) -> bool: ...
    # lifecycle
    def close(self) -> None: ...


def make_store(dsn: str) -> SnapshotStore:
    """
    Factory:
      - sqlite:///path -> SQLiteStore (file created on first use)
      - memory://      -> MemoryStore (process-local, shared by every session using it)
    """
    if dsn.startswith("sqlite:///"):
        from .sqlite_store import SQLiteStore
        return SQLiteStore(dsn.removeprefix("sqlite:///"))

    if dsn.startswith("memory://"):
        from .memory_store import MemoryStore
        return MemoryStore()

    raise ValueError(f"Unsupported store DSN: {dsn}")
