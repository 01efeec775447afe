from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, Optional

from .config import CATEGORIES, PRIORITIES, SORT_KEYS
from .models import EffectiveRecord
from .overrides import OverrideStore

_PRIORITY_RANK = {p: i for i, p in enumerate(PRIORITIES)}


class MergeView:
    """
    Read side of the triage state: every record merged with its overrides.
    Filtering, sorting, stats and both exports go through here, so none of
    them ever sees a base value that an operator has overridden.
    """

    def __init__(self, store: OverrideStore) -> None:
        self.store = store

    def effective(self, rid: int) -> EffectiveRecord:
        s = self.store
        return EffectiveRecord(
            record=s.record(rid),
            categories=s.categories(rid),
            proposed_term=s.proposed_term(rid),
            completed=s.is_completed(rid),
        )

    def all(self) -> List[EffectiveRecord]:
        return [self.effective(rid) for rid in self.store.ids()]

    def rows(
        self,
        *,
        search: str = "",
        priority: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
        sort: str = "impact",
    ) -> List[EffectiveRecord]:
        """
        Filter then sort.
          search   : case-insensitive substring of the raw term
          priority : exact priority tier
          category : membership in the effective category list
          status   : "completed" | "pending"
          sort     : impact (default) | alphabetical | category | priority
        """
        needle = (search or "").lower()
        out: List[EffectiveRecord] = []
        for e in self.all():
            if needle and needle not in e.record.raw_term.lower():
                continue
            if priority and e.record.priority != priority:
                continue
            if category and category not in e.categories:
                continue
            if status == "completed" and not e.completed:
                continue
            if status == "pending" and e.completed:
                continue
            out.append(e)
        return sort_rows(out, sort)

    def stats(self) -> Dict[str, Any]:
        rows = self.all()
        per_category: Counter = Counter()
        for e in rows:
            per_category.update(e.categories)
        completed = sum(1 for e in rows if e.completed)
        return {
            "total_terms": len(rows),
            "total_problems": len(rows),
            "critical": sum(1 for e in rows if e.record.priority == "critical"),
            "formatting": sum(
                1 for e in rows
                if "formatting" in e.categories or "incomplete" in e.categories
            ),
            "total_impact": sum(e.record.occurrence_count for e in rows),
            "completed": completed,
            "remaining": len(rows) - completed,
            "categories": {c: per_category.get(c, 0) for c in CATEGORIES},
        }


def sort_rows(rows: List[EffectiveRecord], key: str = "impact") -> List[EffectiveRecord]:
    if key not in SORT_KEYS:
        key = "impact"
    if key == "alphabetical":
        return sorted(rows, key=lambda e: (e.record.raw_term.casefold(), e.id))
    if key == "category":
        return sorted(rows, key=lambda e: (e.categories[0], -e.record.occurrence_count, e.id))
    if key == "priority":
        return sorted(
            rows,
            key=lambda e: (-_PRIORITY_RANK[e.record.priority], -e.record.occurrence_count, e.id),
        )
    return sorted(rows, key=lambda e: (-e.record.occurrence_count, e.id))
