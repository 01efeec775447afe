# triage/engine.py
from __future__ import annotations

import os
import logging
from typing import Any, Dict, List, Optional

from . import config as CFG
from .DB.api import SnapshotStore, StoreError, make_store
from .export import csv_report, sql_script
from .loader import build_records, dataset_key, load_terms
from .models import TermRecord
from .overrides import OverrideStore
from .sync import LOCAL, SyncSession
from .view import MergeView

log = logging.getLogger(__name__)


class Engine:
    """
    Thin orchestration layer that glues together:
      - loading and classifying the input terms (loader + rules),
      - the operator overlay (OverrideStore) and its read side (MergeView),
      - best-effort persistence of the overlay (SyncSession over a SnapshotStore).

    Public API (used by CLI/Flask):
      * load(path, ...):       read terms -> build records -> attach overrides + sync
      * load_items(items, ...): same, from already-parsed records
      * rows(...), stats():    filtered/sorted effective rows and counters
      * export_csv/export_sql: report text for the given (or all) rows
      * shutdown():            flush pending saves, close the store

    Storage DSNs (via triage.DB.api.make_store):
      - "sqlite:///path/to/overrides.sqlite"
      - "memory://"
      - None -> local only, nothing persisted
    """

    # ------------- lifecycle -------------

    def __init__(self) -> None:
        self.records: List[TermRecord] = []
        self.dataset_id: Optional[str] = None
        self.overrides: Optional[OverrideStore] = None
        self.view: Optional[MergeView] = None
        self.session: Optional[SyncSession] = None
        self._store: Optional[SnapshotStore] = None
        self._owns_store = False

    # /* ~~~ Read a terms file and wire up overrides + sync ~~~ */
    def load(
        self,
        path: str,
        *,
        db_dsn: Optional[str] = None,          # e.g. "sqlite:///./overrides.sqlite" or "memory://"
        store: Optional[SnapshotStore] = None, # share an existing store (tests, multiple engines)
        debounce: Optional[float] = None,
        verbose: bool = False,
    ) -> None:
        if verbose:
            logging.basicConfig(level=logging.INFO)
            os.environ["TRIAGE_VERBOSE"] = "1"

        log.info("Loading terms from %s", path)
        items = load_terms(path)  # TermsLoadError propagates: no partial state
        self.load_items(items, db_dsn=db_dsn, store=store, debounce=debounce)

    def load_items(
        self,
        items: List[Dict[str, Any]],
        *,
        db_dsn: Optional[str] = None,
        store: Optional[SnapshotStore] = None,
        debounce: Optional[float] = None,
    ) -> None:
        records = build_records(items)
        self.records = records
        self.dataset_id = dataset_key(items)
        self.overrides = OverrideStore(records)
        self.view = MergeView(self.overrides)
        log.info("Classified %d terms (dataset %s)", len(records), self.dataset_id)

        # Choose a store: explicit object > DSN > none (local only)
        self._store, self._owns_store = store, False
        if self._store is None and db_dsn:
            log.info("Initializing snapshot store: %s", db_dsn)
            try:
                self._store = make_store(db_dsn)
                self._owns_store = True
            except StoreError as exc:
                log.warning("Snapshot store unavailable, running local-only: %s", exc)

        self.session = SyncSession(
            self.overrides,
            self._store,
            self.dataset_id,
            debounce=CFG.SAVE_DEBOUNCE if debounce is None else debounce,
        )
        self.session.start()
        log.info("Engine load complete: records=%d sync=%s", len(records), self.session.status)

    # ------------- queries -------------

    def _require(self) -> MergeView:
        if self.view is None:
            raise RuntimeError("Engine not initialized. Call load() first.")
        return self.view

    def rows(self, **filters: Any):
        return self._require().rows(**filters)

    def stats(self) -> Dict[str, Any]:
        return self._require().stats()

    @property
    def sync_status(self) -> str:
        return self.session.status if self.session else LOCAL

    # ------------- exports -------------

    def export_csv(self, rows=None) -> str:
        return csv_report(rows if rows is not None else self._require().rows())

    def export_sql(self, rows=None) -> str:
        return sql_script(rows if rows is not None else self._require().rows())

    # ------------- teardown -------------

    # /* ~~~ Flush pending saves and close underlying resources ~~~ */
    def shutdown(self) -> None:
        try:
            if self.session:
                self.session.close()
            if self._store and self._owns_store:
                self._store.close()
        finally:
            self.session = None
            self._store = None
            log.info("Engine shutdown complete")
