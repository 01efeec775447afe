# triage/DB/sqlite_store.py
from __future__ import annotations
import json
import logging
import os
import sqlite3
import threading
from typing import Callable, Dict, List, Optional

from .api import OnChange, SnapshotStore, StoreError
from ..models import Snapshot

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
  dataset_id TEXT PRIMARY KEY,
  document TEXT NOT NULL,
  last_updated TEXT NOT NULL
);
"""


class SQLiteStore(SnapshotStore):
    """
    One JSON document per dataset in a local SQLite file.

    Subscribers registered on this object hear about every save made through
    it; writes made by other processes are picked up by poll().
    """
    def __init__(self, db_path: str) -> None:
        self.db_path = os.path.abspath(db_path)
        self._lock = threading.Lock()
        self._subs: Dict[str, List[OnChange]] = {}
        self._seen: Dict[str, str] = {}  # dataset_id -> last_updated last delivered
        try:
            os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            # saves arrive from the debounce timer thread
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"cannot open {self.db_path}: {exc}") from exc

    def _row(self, dataset_id: str):
        with self._lock:
            try:
                return self.conn.execute(
                    "SELECT document, last_updated FROM snapshots WHERE dataset_id=?",
                    (dataset_id,),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"read failed for {dataset_id}: {exc}") from exc

    # ---- Read ----
    def load(self, dataset_id: str) -> Optional[Snapshot]:
        row = self._row(dataset_id)
        if row is None:
            return None
        self._seen[dataset_id] = row[1]
        try:
            doc = json.loads(row[0])
        except json.JSONDecodeError:
            log.warning("Stored document for %s is not valid JSON; ignoring it", dataset_id)
            return None
        return Snapshot.from_document(doc if isinstance(doc, dict) else {})

    # ---- Write ----
    def save(self, dataset_id: str, snapshot: Snapshot) -> None:
        doc = snapshot.to_document(dataset_id)
        with self._lock:
            try:
                self.conn.execute(
                    "INSERT OR REPLACE INTO snapshots(dataset_id, document, last_updated) "
                    "VALUES (?,?,?)",
                    (dataset_id, json.dumps(doc, ensure_ascii=False), doc["lastUpdated"]),
                )
                self.conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"write failed for {dataset_id}: {exc}") from exc
            self._seen[dataset_id] = doc["lastUpdated"]
            subs = list(self._subs.get(dataset_id, ()))
        for cb in subs:
            cb(Snapshot.from_document(doc))

    # ---- Notifications ----
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
        """Deliver a document written elsewhere since the last delivery. True if one was."""
        row = self._row(dataset_id)
        if row is None or self._seen.get(dataset_id) == row[1]:
            return False
        self._seen[dataset_id] = row[1]
        snap = self.load(dataset_id)
        if snap is None:
            return False
        with self._lock:
            subs = list(self._subs.get(dataset_id, ()))
        for cb in subs:
            cb(snap)
        return True

    # ---- lifecycle ----
    def close(self) -> None:
        with self._lock:
            self._subs.clear()
            self.conn.close()
