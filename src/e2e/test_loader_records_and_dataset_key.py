import json
import re
from pathlib import Path

import pytest

from triage.loader import TermsLoadError, _js_hash, build_records, dataset_key, load_terms


def _write(tmp: Path, data) -> str:
    p = tmp / "terms.json"
    p.write_text(json.dumps(data), encoding="utf-8")
    return str(p)


def test_records_are_built_in_input_order(tmp_path: Path):
    items = load_terms(_write(tmp_path, [
        {"term": '"lillies  bunch', "count": 2},
        {"term": "assorted roses", "count": 3},
        {"term": "hydrangea", "count": 25},
    ]))
    recs = build_records(items)
    assert [r.id for r in recs] == [1, 2, 3]

    first = recs[0]
    assert first.raw_term == '"lillies  bunch'
    assert first.base_category == "formatting"
    assert first.base_proposed_term == "lilies bunch"
    assert first.priority == "high"

    assert recs[1].base_category == "missing-assortment"
    assert recs[1].priority == "low"

    assert recs[2].issues == ()
    assert recs[2].base_proposed_term == recs[2].raw_term
    assert recs[2].priority == "critical"


def test_missing_file_is_a_load_error(tmp_path: Path):
    with pytest.raises(TermsLoadError):
        load_terms(str(tmp_path / "nope.json"))


def test_unparsable_file_is_a_load_error(tmp_path: Path):
    p = tmp_path / "bad.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(TermsLoadError):
        load_terms(str(p))


@pytest.mark.parametrize("data", [
    {"term": "x", "count": 1},
    [{"term": 5, "count": 1}],
    [{"term": "x", "count": -1}],
    ["x"],
])
def test_wrong_shape_is_a_load_error(tmp_path: Path, data):
    with pytest.raises(TermsLoadError):
        load_terms(_write(tmp_path, data))


def test_js_compatible_hash():
    assert _js_hash("") == 0
    assert _js_hash("hello") == 99162322
    # wraps to the most negative 32-bit value
    assert _js_hash("polygenelubricants") == -2147483648


def test_dataset_key_shape_and_stability():
    items = [{"term": f"t{i}", "count": i} for i in range(15)]
    key = dataset_key(items)
    assert re.fullmatch(r"dataset_\d+", key)
    assert dataset_key([dict(d) for d in items]) == key
    assert dataset_key([]) == "dataset_2914"


def test_dataset_key_only_looks_at_first_ten_records():
    items = [{"term": f"t{i}", "count": i} for i in range(15)]
    tail_changed = items[:10] + [{"term": "other", "count": 0}]
    head_changed = [{"term": "other", "count": 0}] + items[1:]
    assert dataset_key(tail_changed) == dataset_key(items)
    assert dataset_key(head_changed) != dataset_key(items)


def test_non_utf8_file_is_a_load_error(tmp_path: Path):
    p = tmp_path / "latin1.json"
    p.write_bytes(b'[{"term": "ros\xff", "count": 1}]')
    with pytest.raises(TermsLoadError):
        load_terms(str(p))
