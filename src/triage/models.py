# triage/models.py
"""
Data models for the triage core.

- TermRecord: the immutable, computed classification of one failed search.
- OverrideEntry: an operator's corrections for one record (read-only view).
- EffectiveRecord: a record merged with its overrides; what the UI and the
  exporters read.
- Snapshot: the persisted override state for one dataset.
- ChangeEvent: emitted by the override store after every mutation.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .config import NO_CHANGE


@dataclass(frozen=True, slots=True)
class TermRecord:
    """
    One failed search term and everything computed from it at load time.

    Attributes
    ----------
    id : int
        1-based position in the input file. Stable for the session.
    raw_term : str
        The term exactly as it appears in the input; never modified.
    occurrence_count : int
        Number of searches for this term that returned nothing.
    issues : tuple[str, ...]
        Detected issue tags in rule order (may be empty).
    base_category : str
        The single category picked by the categorizer.
    suggested_fix : str
        Advisory text for the operator.
    base_proposed_term : str
        Output of the normalizer; equals raw_term when nothing applies.
    priority : str
        One of low / medium / high / critical.
    """
    id: int
    raw_term: str
    occurrence_count: int
    issues: Tuple[str, ...]
    base_category: str
    suggested_fix: str
    base_proposed_term: str
    priority: str


@dataclass(frozen=True, slots=True)
class OverrideEntry:
    completed: bool = False
    edited_proposed_term: Optional[str] = None
    edited_categories: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True, slots=True)
class EffectiveRecord:
    record: TermRecord
    categories: Tuple[str, ...]
    proposed_term: str
    completed: bool

    @property
    def id(self) -> int:
        return self.record.id

    @property
    def needs_change(self) -> bool:
        p = self.proposed_term
        return p != self.record.raw_term and p != NO_CHANGE

    def to_dict(self) -> Dict[str, Any]:
        r = self.record
        return {
            "id": r.id,
            "term": r.raw_term,
            "count": r.occurrence_count,
            "issues": list(r.issues),
            "base_category": r.base_category,
            "categories": list(self.categories),
            "suggested_fix": r.suggested_fix,
            "base_proposed_term": r.base_proposed_term,
            "proposed_term": self.proposed_term,
            "needs_change": self.needs_change,
            "priority": r.priority,
            "completed": self.completed,
        }


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    kind: str                   # operation name, e.g. "set_completed"
    ids: Tuple[int, ...] = ()   # affected record ids; empty for "replace_state"
    persist: bool = True        # False for selection-only and remote-applied changes


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _int_keys(items) -> Dict[int, Any]:
    out: Dict[int, Any] = {}
    for k, v in items:
        try:
            out[int(k)] = v
        except (TypeError, ValueError):
            continue
    return out


@dataclass(slots=True)
class Snapshot:
    """
    Override state as persisted in the shared store.

    `last_updated` orders snapshots for last-writer-wins reconciliation;
    None means "never saved" and loses against any timestamped snapshot.
    """
    completed_ids: FrozenSet[int] = frozenset()
    edited_terms: Dict[int, str] = field(default_factory=dict)
    edited_categories: Dict[int, Tuple[str, ...]] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    def to_document(self, dataset_id: str) -> Dict[str, Any]:
        ts = self.last_updated or datetime.now(timezone.utc)
        return {
            "completedTerms": sorted(self.completed_ids),
            "editedTerms": {str(k): v for k, v in sorted(self.edited_terms.items())},
            "editedCategories": {
                str(k): list(v) for k, v in sorted(self.edited_categories.items())
            },
            "lastUpdated": ts.isoformat(),
            "datasetId": dataset_id,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Snapshot":
        """Each field falls back to its empty default on its own."""
        completed = doc.get("completedTerms")
        completed_ids = set()
        if isinstance(completed, list):
            for v in completed:
                try:
                    completed_ids.add(int(v))
                except (TypeError, ValueError):
                    continue

        terms = doc.get("editedTerms")
        edited_terms = {
            k: v for k, v in _int_keys(terms.items()).items() if isinstance(v, str)
        } if isinstance(terms, dict) else {}

        cats = doc.get("editedCategories")
        edited_categories: Dict[int, Tuple[str, ...]] = {}
        if isinstance(cats, dict):
            for k, v in _int_keys(cats.items()).items():
                if isinstance(v, list) and v:
                    edited_categories[k] = tuple(dict.fromkeys(str(t) for t in v))

        return cls(
            completed_ids=frozenset(completed_ids),
            edited_terms=edited_terms,
            edited_categories=edited_categories,
            last_updated=_parse_timestamp(doc.get("lastUpdated")),
        )
