# triage/DB/memory_store.py
from __future__ import annotations
import copy
import threading
from typing import Any, Callable, Dict, List, Optional

from .api import OnChange, SnapshotStore
from ..models import Snapshot


class MemoryStore(SnapshotStore):
    """
    In-process document store (useful for tests or ephemeral runs).

    Documents are kept in their persisted JSON shape so that a save/load pair
    goes through the same conversion as a real remote store.
    """
    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._subs: Dict[str, List[OnChange]] = {}
        self._lock = threading.Lock()

    # R
    def load(self, dataset_id: str) -> Optional[Snapshot]:
        with self._lock:
            doc = self._docs.get(dataset_id)
            doc = copy.deepcopy(doc) if doc is not None else None
        return Snapshot.from_document(doc) if doc is not None else None

    # W
    def save(self, dataset_id: str, snapshot: Snapshot) -> None:
        doc = snapshot.to_document(dataset_id)
        with self._lock:
            self._docs[dataset_id] = doc
            subs = list(self._subs.get(dataset_id, ()))
        for cb in subs:
            cb(Snapshot.from_document(copy.deepcopy(doc)))

    # notifications
    def subscribe(self, dataset_id: str, on_change: OnChange) -> Callable[[], None]:
        with self._lock:
            self._subs.setdefault(dataset_id, []).append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                subs = self._subs.get(dataset_id, [])
                if on_change in subs:
                    subs.remove(on_change)
        return unsubscribe

    def poll(self, dataset_id: str) -> bool:
        # every writer shares this object, so saves are already pushed
        return False

    def close(self) -> None:
        with self._lock:
            self._subs.clear()
