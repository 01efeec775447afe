import json
from pathlib import Path

import pytest

from triage.DB.api import make_store
from triage.DB.sqlite_store import SQLiteStore
from triage.engine import Engine
from triage.models import Snapshot


def _seed(tmp: Path) -> str:
    p = tmp / "terms.json"
    p.write_text(json.dumps([
        {"term": '"rose', "count": 12},
        {"term": "tulip", "count": 2},
    ]), encoding="utf-8")
    return str(p)


@pytest.mark.e2e
def test_overrides_survive_a_restart(tmp_path: Path):
    terms = _seed(tmp_path)
    dsn = f"sqlite:///{tmp_path / 'overrides.sqlite'}"

    e1 = Engine()
    e1.load(terms, db_dsn=dsn, debounce=60)
    assert e1.sync_status == "connected"
    e1.overrides.set_completed(1)
    e1.overrides.add_category(2, "seasonal")
    e1.shutdown()

    e2 = Engine()
    try:
        e2.load(terms, db_dsn=dsn)
        assert e2.view.effective(1).completed
        assert e2.view.effective(2).categories == ("typo", "seasonal")
    finally:
        e2.shutdown()


@pytest.mark.e2e
def test_poll_delivers_writes_from_another_connection(tmp_path: Path):
    path = str(tmp_path / "shared.sqlite")
    writer, reader = SQLiteStore(path), SQLiteStore(path)
    got = []
    try:
        reader.subscribe("ds", got.append)
        assert reader.poll("ds") is False
        writer.save("ds", Snapshot(completed_ids=frozenset({7})))
        assert reader.poll("ds") is True
        assert got[0].completed_ids == {7}
        assert reader.poll("ds") is False
    finally:
        writer.close()
        reader.close()


@pytest.mark.e2e
def test_second_engine_sees_edits_after_polling(tmp_path: Path):
    terms = _seed(tmp_path)
    dsn = f"sqlite:///{tmp_path / 'overrides.sqlite'}"
    a, b = Engine(), Engine()
    try:
        a.load(terms, db_dsn=dsn, debounce=60)
        b.load(terms, db_dsn=dsn, debounce=60)

        a.overrides.set_completed(1)
        a.overrides.edit_proposed_term(2, "tulips")
        a.session.flush()
        assert not b.overrides.is_completed(1)

        assert b.session.poll() is True
        assert b.overrides.is_completed(1)
        assert b.view.effective(2).proposed_term == "tulips"
        assert b.session.poll() is False

        # and back the other way
        b.overrides.set_completed(1, False)
        b.session.flush()
        assert a.session.poll() is True
        assert not a.overrides.is_completed(1)
    finally:
        a.shutdown()
        b.shutdown()

def test_make_store_rejects_unknown_dsn():
    with pytest.raises(ValueError):
        make_store("redis://localhost")
