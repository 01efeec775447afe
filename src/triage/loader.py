from __future__ import annotations
import json
import logging
import os
from typing import Any, Dict, Iterable, List

from .config import DATASET_SAMPLE, VERBOSE
from .models import TermRecord
from .normalize import clean_term
from .rules import categorize, get_priority, identify_issues, suggest_fix

log = logging.getLogger(__name__)

PROGRESS_EVERY_RECORDS = 10_000


class TermsLoadError(RuntimeError):
    """The input file is missing, unreadable or not a list of {term, count}."""


def _validate_item(i: int, item: Any) -> Dict[str, Any]:
    if not isinstance(item, dict):
        raise TermsLoadError(f"record {i}: expected an object, got {type(item).__name__}")
    term = item.get("term")
    count = item.get("count", 0)
    if not isinstance(term, str):
        raise TermsLoadError(f"record {i}: 'term' must be a string")
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise TermsLoadError(f"record {i}: 'count' must be a non-negative integer")
    return item


def load_terms(path: str) -> List[Dict[str, Any]]:
    """
    Read the failed-search export: a JSON array of {"term": str, "count": int}.
    Either the whole file loads or TermsLoadError is raised; there is no
    partial result.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as exc:
        raise TermsLoadError(f"cannot read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise TermsLoadError(f"{path} is not UTF-8 text: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise TermsLoadError(f"{path} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise TermsLoadError(f"{path}: expected a JSON array of records")
    items = [_validate_item(i, item) for i, item in enumerate(data)]
    log.info("Loaded %d terms from %s", len(items), os.path.basename(path))
    return items


def build_record(rid: int, term: str, count: int) -> TermRecord:
    issues = identify_issues(term)
    return TermRecord(
        id=rid,
        raw_term=term,
        occurrence_count=count,
        issues=issues,
        base_category=categorize(term),
        suggested_fix=suggest_fix(term),
        base_proposed_term=clean_term(term),
        priority=get_priority(count, issues),
    )


def build_records(items: Iterable[Dict[str, Any]]) -> List[TermRecord]:
    records: List[TermRecord] = []
    for i, item in enumerate(items, start=1):
        records.append(build_record(i, item["term"], int(item.get("count", 0))))
        if VERBOSE and i % PROGRESS_EVERY_RECORDS == 0:
            print(f"[classified] records={i:,}")
    return records


def _js_hash(text: str) -> int:
    """32-bit signed rolling hash, h = h*31 + code unit, over UTF-16 code units."""
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x1_0000_0000 if h & 0x8000_0000 else h


def dataset_key(items: List[Dict[str, Any]]) -> str:
    """
    Identify a dataset by its first few records so overrides made on one input
    file never land on another in the shared store.
    """
    sample = json.dumps(items[:DATASET_SAMPLE], ensure_ascii=False, separators=(",", ":"))
    return f"dataset_{abs(_js_hash(sample))}"
