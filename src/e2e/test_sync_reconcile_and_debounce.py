import threading
import time
from datetime import datetime, timedelta, timezone

from triage.DB.api import StoreError
from triage.DB.memory_store import MemoryStore
from triage.loader import build_records
from triage.models import Snapshot
from triage.overrides import OverrideStore
from triage.sync import CONNECTED, DISCONNECTED, LOCAL, Debouncer, SyncSession, reconcile

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _FlakyStore(MemoryStore):
    """MemoryStore whose every call fails while `online` is False."""

    def __init__(self):
        super().__init__()
        self.online = True

    def _check(self):
        if not self.online:
            raise StoreError("store is offline")

    def load(self, dataset_id):
        self._check()
        return super().load(dataset_id)

    def save(self, dataset_id, snapshot):
        self._check()
        super().save(dataset_id, snapshot)

    def subscribe(self, dataset_id, on_change):
        self._check()
        return super().subscribe(dataset_id, on_change)


def _overrides() -> OverrideStore:
    return OverrideStore(build_records(
        {"term": t, "count": 1} for t in ('"rose', "tulip", "moab")
    ))


def test_reconcile_last_writer_wins():
    local = Snapshot(completed_ids=frozenset({1}), last_updated=T0)
    newer = Snapshot(completed_ids=frozenset({2}), last_updated=T0 + timedelta(seconds=1))
    older = Snapshot(completed_ids=frozenset({3}), last_updated=T0 - timedelta(seconds=1))
    same = Snapshot(completed_ids=frozenset({4}), last_updated=T0)

    assert reconcile(local, newer) is newer
    assert reconcile(local, older) is local
    assert reconcile(local, same) is local
    assert reconcile(local, None) is local
    assert reconcile(Snapshot(), newer) is newer
    assert reconcile(local, Snapshot()) is local


def test_missing_document_fields_default_independently():
    snap = Snapshot.from_document({"completedTerms": [1, "2", "x"]})
    assert snap.completed_ids == {1, 2}
    assert snap.edited_terms == {}
    assert snap.edited_categories == {}
    assert snap.last_updated is None

    snap = Snapshot.from_document({"editedCategories": {"3": ["bbd"], "4": []}})
    assert snap.completed_ids == frozenset()
    assert snap.edited_categories == {3: ("bbd",)}


def test_document_shape():
    snap = Snapshot(frozenset({2, 1}), {1: "rose"}, {1: ("bbd", "typo")}, T0)
    doc = snap.to_document("dataset_1")
    assert doc == {
        "completedTerms": [1, 2],
        "editedTerms": {"1": "rose"},
        "editedCategories": {"1": ["bbd", "typo"]},
        "lastUpdated": "2024-01-01T00:00:00+00:00",
        "datasetId": "dataset_1",
    }
    assert Snapshot.from_document(doc) == snap


def test_debouncer_coalesces_bursts():
    calls = []
    done = threading.Event()

    def fn():
        calls.append(1)
        done.set()

    d = Debouncer(0.05, fn)
    for _ in range(5):
        d.trigger()
    assert done.wait(2.0)
    time.sleep(0.1)
    assert calls == [1]
    assert not d.pending


def test_debouncer_flush_and_cancel():
    calls = []
    d = Debouncer(60, lambda: calls.append(1))
    assert d.flush() is False
    d.trigger()
    assert d.pending
    assert d.flush() is True
    assert calls == [1]
    d.trigger()
    d.cancel()
    assert not d.pending and calls == [1]


def test_edits_are_saved_after_the_quiet_period():
    store = MemoryStore()
    ov = _overrides()
    s = SyncSession(ov, store, "ds", debounce=60)
    s.start()
    assert s.status == CONNECTED

    ov.set_completed(1)
    ov.edit_proposed_term(2, "tulips")
    ov.toggle_selected(3)
    assert store.load("ds") is None and s.save_pending

    assert s.flush() is True
    saved = store.load("ds")
    assert saved.completed_ids == {1}
    assert saved.edited_terms == {2: "tulips"}
    assert saved.last_updated == s.last_applied
    s.close()


def test_selection_alone_does_not_schedule_a_save():
    s = SyncSession(_overrides(), MemoryStore(), "ds", debounce=60)
    s.start()
    s.overrides.select([1, 2])
    assert not s.save_pending
    s.close()


def test_second_session_receives_pushed_snapshot():
    store = MemoryStore()
    a = SyncSession(_overrides(), store, "ds", debounce=60)
    b = SyncSession(_overrides(), store, "ds", debounce=60)
    a.start()
    b.start()

    a.overrides.remove_category(3, "unknown")
    a.overrides.add_category(1, "typo")
    a.flush()

    assert b.overrides.categories(1) == ("formatting", "typo")
    assert b.last_applied == a.last_applied
    # a's own echo is not newer than what it holds
    assert a.overrides.categories(1) == ("formatting", "typo")
    a.close()
    b.close()


def test_existing_snapshot_is_loaded_on_start():
    store = MemoryStore()
    store.save("ds", Snapshot(completed_ids=frozenset({2}), last_updated=T0))
    s = SyncSession(_overrides(), store, "ds")
    s.start()
    assert s.overrides.is_completed(2)
    assert s.last_applied == T0


def test_older_push_does_not_overwrite_local_state():
    s = SyncSession(_overrides(), MemoryStore(), "ds", debounce=60)
    s.start()
    s.overrides.set_completed(1)
    s.flush()
    assert s.apply_remote(Snapshot(completed_ids=frozenset({3}), last_updated=T0)) is False
    assert s.overrides.completed_ids == {1}


def test_unavailable_store_degrades_to_local():
    store = _FlakyStore()
    store.online = False
    s = SyncSession(_overrides(), store, "ds", debounce=60)
    s.start()
    assert s.status == DISCONNECTED

    s.overrides.set_completed(2)
    assert s.flush() is True
    assert s.status == DISCONNECTED and s.last_error
    assert s.overrides.is_completed(2)

    store.online = True
    s.overrides.set_completed(3)
    s.flush()
    assert s.status == CONNECTED
    assert store.load("ds").completed_ids == {2, 3}
    s.close()


def test_no_store_means_local_status():
    s = SyncSession(_overrides(), None, "ds")
    s.start()
    s.overrides.set_completed(1)
    assert s.status == LOCAL and not s.save_pending


def test_close_retries_a_save_that_failed_during_an_outage():
    store = _FlakyStore()
    s = SyncSession(_overrides(), store, "ds", debounce=60)
    s.start()

    store.online = False
    s.overrides.set_completed(1)
    assert s.flush() is True
    assert s.status == DISCONNECTED and s.unsaved and not s.save_pending

    store.online = True
    s.close()
    assert store.load("ds").completed_ids == {1}


def test_poll_applies_snapshots_the_store_did_not_push():
    store = MemoryStore()
    s = SyncSession(_overrides(), store, "ds", debounce=60)
    s.start()
    assert s.poll() is False

    later = Snapshot(completed_ids=frozenset({2}), last_updated=T0)
    store.poll = lambda ds: s.apply_remote(later)
    assert s.poll() is True
    assert s.overrides.completed_ids == {2}
    assert s.poll() is False
    s.close()
