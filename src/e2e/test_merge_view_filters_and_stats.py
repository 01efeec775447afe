from triage.loader import build_records
from triage.overrides import OverrideStore
from triage.view import MergeView


def _view() -> MergeView:
    items = [
        {"term": '"rose', "count": 12},
        {"term": "assorted roses", "count": 3},
        {"term": "Zinnia", "count": 30},
        {"term": "christmas wreath", "count": 7},
    ]
    return MergeView(OverrideStore(build_records(items)))


def test_effective_values_follow_overrides():
    v = _view()
    e = v.effective(1)
    assert e.categories == ("formatting",) and e.proposed_term == "rose" and not e.completed
    assert e.needs_change

    v.store.add_category(1, "typo")
    v.store.edit_proposed_term(1, "roses")
    v.store.set_completed(1)
    e = v.effective(1)
    assert e.categories == ("formatting", "typo")
    assert e.proposed_term == "roses"
    assert e.completed
    # the computed base is never touched
    assert e.record.base_proposed_term == "rose"
    assert e.record.base_category == "formatting"


def test_sentinel_proposed_term_means_no_change():
    v = _view()
    v.store.edit_proposed_term(1, "No change needed")
    assert not v.effective(1).needs_change


def test_default_sort_is_by_impact():
    assert [e.id for e in _view().rows()] == [3, 1, 4, 2]


def test_other_sorts():
    v = _view()
    assert [e.record.raw_term for e in v.rows(sort="alphabetical")] == [
        '"rose', "assorted roses", "christmas wreath", "Zinnia",
    ]
    assert [e.id for e in v.rows(sort="priority")] == [3, 1, 4, 2]
    assert [e.categories[0] for e in v.rows(sort="category")] == [
        "formatting", "missing-assortment", "seasonal", "typo",
    ]


def test_filters_read_effective_categories_and_status():
    v = _view()
    assert [e.id for e in v.rows(category="typo")] == [3]
    v.store.add_category(4, "typo")
    assert [e.id for e in v.rows(category="typo")] == [3, 4]

    v.store.set_completed(2)
    assert [e.id for e in v.rows(status="completed")] == [2]
    assert 2 not in [e.id for e in v.rows(status="pending")]

    assert [e.id for e in v.rows(search="ROSE")] == [1, 2]
    assert [e.id for e in v.rows(priority="critical")] == [3]


def test_stats():
    v = _view()
    v.store.set_completed(1)
    v.store.add_category(2, "formatting")
    s = v.stats()
    assert s["total_terms"] == 4
    assert s["critical"] == 1
    assert s["formatting"] == 2
    assert s["total_impact"] == 52
    assert s["completed"] == 1 and s["remaining"] == 3
    assert s["categories"]["formatting"] == 2
    assert s["categories"]["bbd"] == 0
