import pytest

from triage.loader import build_records
from triage.overrides import OverrideStore


def _store() -> OverrideStore:
    terms = ['"rose', "tulip", "lavendar sprigs"]
    return OverrideStore(build_records({"term": t, "count": 1} for t in terms))


def test_replace_prefix_suffix():
    s = _store()
    assert s.bulk_edit_terms([1, 2], "replace", text="peony") == 2
    assert [s.proposed_term(i) for i in (1, 2)] == ["peony", "peony"]

    s.bulk_edit_terms([1], "prefix", text="pink ")
    s.bulk_edit_terms([2], "suffix", text=" stems")
    assert s.proposed_term(1) == "pink peony"
    assert s.proposed_term(2) == "peony stems"


def test_empty_text_leaves_terms_unchanged():
    s = _store()
    for mode in ("replace", "prefix", "suffix"):
        assert s.bulk_edit_terms([1, 2, 3], mode, text="") == 0
    assert s.proposed_term(3) == "lavender sprigs"
    assert s.entry(1) is None


def test_find_replace_works_on_the_effective_term():
    s = _store()
    s.edit_proposed_term(2, "tulip tulip")
    n = s.bulk_edit_terms([2, 3], "find-replace", find="tulip", replace="tulips")
    assert n == 2
    assert s.proposed_term(2) == "tulips tulips"
    # no match: the override is recorded with the unchanged effective value
    assert s.proposed_term(3) == "lavender sprigs"


def test_find_replace_allows_empty_replacement():
    s = _store()
    s.bulk_edit_terms([3], "find-replace", find=" sprigs", replace="")
    assert s.proposed_term(3) == "lavender"


def test_find_replace_needs_find_text():
    s = _store()
    assert s.bulk_edit_terms([3], "find-replace", find="", replace="x") == 0


def test_find_replace_pattern_mode():
    s = _store()
    s.bulk_edit_terms([1, 3], "find-replace", find=r"^(\w)", replace=r"[\1]", regex=True)
    assert s.proposed_term(1) == "[r]ose"
    assert s.proposed_term(3) == "[l]avender sprigs"
    with pytest.raises(ValueError):
        s.bulk_edit_terms([1], "find-replace", find="(", regex=True)


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        _store().bulk_edit_terms([1], "upper", text="x")
