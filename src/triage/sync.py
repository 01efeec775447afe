# triage/sync.py
"""
Best-effort persistence of operator overrides.

Local state is always authoritative for the running session; the store is a
shared mirror. Saves are debounced, incoming snapshots are applied whole when
they are strictly newer than what this session last applied, and any store
failure only flips the status to "disconnected".
"""
from __future__ import annotations
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from .DB.api import SnapshotStore, StoreError
from .models import ChangeEvent, Snapshot
from .overrides import OverrideStore

log = logging.getLogger(__name__)

CONNECTED = "connected"
DISCONNECTED = "disconnected"
LOCAL = "local"


class Debouncer:
    """Run `fn` once `delay` seconds after the most recent trigger()."""

    def __init__(self, delay: float, fn: Callable[[], None]) -> None:
        self.delay = float(delay)
        self._fn = fn
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> bool:
        """Run a pending call now instead of waiting. Returns True if one ran."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
        self._fn()
        return True

    def _fire(self) -> None:
        with self._lock:
            # superseded by a later trigger() that raced the cancel
            if self._timer is not threading.current_thread():
                return
            self._timer = None
        self._fn()


def _newer(a: Optional[datetime], b: Optional[datetime]) -> bool:
    """True when a is strictly newer than b (an untimed snapshot is oldest)."""
    if a is None:
        return False
    return b is None or a > b


def reconcile(local: Snapshot, remote: Optional[Snapshot]) -> Snapshot:
    """Last writer wins, per snapshot: the remote replaces local only if strictly newer."""
    if remote is not None and _newer(remote.last_updated, local.last_updated):
        return remote
    return local


class SyncSession:
    """
    Connects an OverrideStore to a SnapshotStore for one dataset.

      * start():   load the stored snapshot, apply it, subscribe to changes
      * edits:     every persistable ChangeEvent re-arms the save debouncer
      * incoming:  reconcile() against the last applied timestamp
      * poll():    pull snapshots written by other processes
      * close():   flush a pending (or previously failed) save and unsubscribe
    """

    def __init__(
        self,
        overrides: OverrideStore,
        store: Optional[SnapshotStore],
        dataset_id: str,
        *,
        debounce: float = 1.0,
    ) -> None:
        self.overrides = overrides
        self.store = store
        self.dataset_id = dataset_id
        self.status = LOCAL if store is None else DISCONNECTED
        self.last_applied: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._lock = threading.RLock()
        self._dirty = False  # last save attempt failed
        self._debouncer = Debouncer(debounce, self.save_now)
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._unwatch = overrides.subscribe(self._on_local_change)

    # ------------- lifecycle -------------

    def start(self) -> None:
        if self.store is None:
            log.info("No snapshot store configured; running local-only")
            return
        try:
            remote = self.store.load(self.dataset_id)
            if remote is not None:
                self.apply_remote(remote)
            self._unsubscribe = self.store.subscribe(self.dataset_id, self.apply_remote)
        except StoreError as exc:
            self._degrade("load", exc)
            return
        self.status = CONNECTED
        log.info("Sync started for %s", self.dataset_id)

    def close(self) -> None:
        if not self._debouncer.flush() and self._dirty:
            log.info("Retrying unsaved edits for %s before closing", self.dataset_id)
            self.save_now()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._unwatch()

    # ------------- outgoing -------------

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    def _on_local_change(self, event: ChangeEvent) -> None:
        if event.persist and self.store is not None:
            self._debouncer.trigger()

    def flush(self) -> bool:
        return self._debouncer.flush()

    @property
    def unsaved(self) -> bool:
        return self._dirty or self._debouncer.pending

    def save_now(self) -> bool:
        if self.store is None:
            return False
        with self._lock:
            snap = self.overrides.snapshot()
            snap.last_updated = datetime.now(timezone.utc)
            # our own echo must not count as newer than what we hold
            self.last_applied = snap.last_updated
        try:
            self.store.save(self.dataset_id, snap)
        except StoreError as exc:
            self._dirty = True
            self._degrade("save", exc)
            return False
        self._dirty = False
        if self.status != CONNECTED:
            log.info("Snapshot store reachable again for %s", self.dataset_id)
        if self._unsubscribe is None:
            try:
                self._unsubscribe = self.store.subscribe(self.dataset_id, self.apply_remote)
            except StoreError as exc:
                self._degrade("subscribe", exc)
                return True
        self.status = CONNECTED
        self.last_error = None
        return True

    # ------------- incoming -------------

    def apply_remote(self, remote: Snapshot) -> bool:
        """Apply a pushed snapshot if it is strictly newer. True if applied."""
        with self._lock:
            local = self.overrides.snapshot()
            local.last_updated = self.last_applied
            merged = reconcile(local, remote)
            if merged is local:
                return False
            self.overrides.replace_state(merged)
            self.last_applied = merged.last_updated
        log.info("Applied remote snapshot for %s (%s)", self.dataset_id, merged.last_updated)
        return True

    def poll(self) -> bool:
        """Pick up snapshots other processes wrote to the store. True if one was applied."""
        if self.store is None or self._unsubscribe is None:
            return False
        before = self.last_applied
        try:
            self.store.poll(self.dataset_id)
        except StoreError as exc:
            self._degrade("poll", exc)
            return False
        return self.last_applied != before

    def _degrade(self, op: str, exc: Exception) -> None:
        self.status = DISCONNECTED
        self.last_error = str(exc)
        log.warning("Snapshot %s failed for %s, continuing locally: %s", op, self.dataset_id, exc)
