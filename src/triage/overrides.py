# triage/overrides.py
from __future__ import annotations
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import CATEGORIES, FALLBACK_CATEGORY
from .models import ChangeEvent, OverrideEntry, Snapshot, TermRecord

log = logging.getLogger(__name__)

Listener = Callable[[ChangeEvent], None]

CATEGORY_MODES = ("add", "remove", "replace")
TERM_MODES = ("replace", "prefix", "suffix", "find-replace")


def _check_category(tag: str) -> str:
    if tag not in CATEGORIES:
        raise ValueError(f"unknown category: {tag!r}")
    return tag


class OverrideStore:
    """
    Operator corrections layered over the computed TermRecords.

    Holds three keyed overlays (completed ids, edited proposed terms, edited
    category lists) and the transient selection used for bulk actions. All
    writes go through the methods below so that an edited category list is
    never empty and never repeats a tag. After each mutation subscribed
    listeners receive a ChangeEvent.
    """

    def __init__(self, records: Iterable[TermRecord], state: Optional[Snapshot] = None) -> None:
        self._records: Dict[int, TermRecord] = {r.id: r for r in records}
        self._completed: Set[int] = set()
        self._edited_terms: Dict[int, str] = {}
        self._edited_categories: Dict[int, Tuple[str, ...]] = {}
        self._selected: Set[int] = set()
        self._listeners: List[Listener] = []
        if state is not None:
            self._load_state(state)

    # ------------- observers -------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _emit(self, kind: str, ids: Iterable[int] = (), *, persist: bool = True) -> None:
        event = ChangeEvent(kind=kind, ids=tuple(ids), persist=persist)
        for listener in list(self._listeners):
            listener(event)

    # ------------- reads -------------

    def record(self, rid: int) -> TermRecord:
        try:
            return self._records[int(rid)]
        except KeyError:
            raise KeyError(rid)

    def ids(self) -> List[int]:
        return list(self._records)

    def categories(self, rid: int) -> Tuple[str, ...]:
        r = self.record(rid)
        return self._edited_categories.get(r.id, (r.base_category,))

    def proposed_term(self, rid: int) -> str:
        r = self.record(rid)
        return self._edited_terms.get(r.id, r.base_proposed_term)

    def is_completed(self, rid: int) -> bool:
        return int(rid) in self._completed

    def entry(self, rid: int) -> Optional[OverrideEntry]:
        """The override for rid, or None when the operator never touched it."""
        rid = self.record(rid).id
        if rid not in self._completed and rid not in self._edited_terms \
                and rid not in self._edited_categories:
            return None
        return OverrideEntry(
            completed=rid in self._completed,
            edited_proposed_term=self._edited_terms.get(rid),
            edited_categories=self._edited_categories.get(rid),
        )

    @property
    def completed_ids(self) -> frozenset:
        return frozenset(self._completed)

    # ------------- single-record edits -------------

    def set_completed(self, rid: int, completed: bool = True) -> None:
        rid = self.record(rid).id
        if completed:
            self._completed.add(rid)
        else:
            self._completed.discard(rid)
        self._emit("set_completed", [rid])

    def edit_proposed_term(self, rid: int, text: str) -> None:
        # an empty string is a real override, not a reset
        rid = self.record(rid).id
        self._edited_terms[rid] = str(text)
        self._emit("edit_proposed_term", [rid])

    def _set_categories(self, rid: int, tags: Sequence[str]) -> bool:
        new = tuple(dict.fromkeys(tags)) or (FALLBACK_CATEGORY,)
        if new == self.categories(rid) and rid in self._edited_categories:
            return False
        self._edited_categories[rid] = new
        return True

    def _add(self, rid: int, tag: str) -> bool:
        current = self.categories(rid)
        if tag in current:
            return False
        return self._set_categories(rid, current + (tag,))

    def _remove(self, rid: int, tag: str) -> bool:
        current = self.categories(rid)
        if tag not in current:
            return False
        return self._set_categories(rid, [t for t in current if t != tag])

    def _replace(self, rid: int, old: str, new: str) -> bool:
        current = self.categories(rid)
        if old not in current:
            return False
        return self._set_categories(rid, [new if t == old else t for t in current])

    def add_category(self, rid: int, tag: str) -> None:
        rid = self.record(rid).id
        if self._add(rid, _check_category(tag)):
            self._emit("add_category", [rid])

    def remove_category(self, rid: int, tag: str) -> None:
        rid = self.record(rid).id
        if self._remove(rid, _check_category(tag)):
            self._emit("remove_category", [rid])

    def replace_category(self, rid: int, old: str, new: str) -> None:
        rid = self.record(rid).id
        if self._replace(rid, _check_category(old), _check_category(new)):
            self._emit("replace_category", [rid])

    # ------------- bulk edits -------------

    def bulk_apply_category(self, ids: Iterable[int], tag: str, mode: str = "add") -> int:
        """Apply one category edit to many records; returns how many changed."""
        _check_category(tag)
        if mode not in CATEGORY_MODES:
            raise ValueError(f"unknown category mode: {mode!r}")
        rids = [self.record(i).id for i in ids]

        changed: List[int] = []
        for rid in rids:
            if mode == "add":
                hit = self._add(rid, tag)
            elif mode == "remove":
                hit = self._remove(rid, tag)
            else:
                hit = self._set_categories(rid, [tag])
            if hit:
                changed.append(rid)
        if changed:
            self._emit("bulk_apply_category", changed)
        return len(changed)

    def bulk_edit_terms(
        self,
        ids: Iterable[int],
        mode: str,
        *,
        text: str = "",
        find: str = "",
        replace: str = "",
        regex: bool = False,
    ) -> int:
        """
        Rewrite the effective proposed term of many records:
          replace       -> text
          prefix/suffix -> text + term / term + text
          find-replace  -> every occurrence of find replaced with replace
        Empty text (or empty find) leaves the terms untouched.
        """
        if mode not in TERM_MODES:
            raise ValueError(f"unknown term mode: {mode!r}")
        rids = [self.record(i).id for i in ids]

        if mode == "find-replace":
            if not find:
                return 0
            if regex:
                try:
                    pattern = re.compile(find)
                except re.error as exc:
                    raise ValueError(f"invalid pattern {find!r}: {exc}") from exc
                rewrite = lambda s: pattern.sub(replace, s)  # noqa: E731
            else:
                rewrite = lambda s: s.replace(find, replace)  # noqa: E731
        elif not text:
            return 0
        elif mode == "replace":
            rewrite = lambda s: text  # noqa: E731
        elif mode == "prefix":
            rewrite = lambda s: text + s  # noqa: E731
        else:
            rewrite = lambda s: s + text  # noqa: E731

        changed: List[int] = []
        for rid in rids:
            current = self.proposed_term(rid)
            new = rewrite(current)
            if new != current or rid not in self._edited_terms:
                self._edited_terms[rid] = new
                changed.append(rid)
        if changed:
            self._emit("bulk_edit_terms", changed)
        return len(changed)

    # ------------- selection (never persisted) -------------

    @property
    def selected(self) -> frozenset:
        return frozenset(self._selected)

    def select(self, ids: Iterable[int]) -> None:
        self._selected.update(self.record(i).id for i in ids)
        self._emit("select", sorted(self._selected), persist=False)

    def deselect(self, ids: Iterable[int]) -> None:
        self._selected.difference_update(int(i) for i in ids)
        self._emit("deselect", sorted(self._selected), persist=False)

    def toggle_selected(self, rid: int) -> bool:
        rid = self.record(rid).id
        if rid in self._selected:
            self._selected.discard(rid)
        else:
            self._selected.add(rid)
        self._emit("toggle_selected", [rid], persist=False)
        return rid in self._selected

    def select_all(self, visible_ids: Iterable[int], checked: bool = True) -> None:
        """Header checkbox: check every visible row, or clear the whole selection."""
        if checked:
            self._selected.update(self.record(i).id for i in visible_ids)
        else:
            self._selected.clear()
        self._emit("select_all", sorted(self._selected), persist=False)

    def clear_selection(self) -> None:
        self._selected.clear()
        self._emit("clear_selection", persist=False)

    # ------------- snapshot state -------------

    def snapshot(self) -> Snapshot:
        return Snapshot(
            completed_ids=frozenset(self._completed),
            edited_terms=dict(self._edited_terms),
            edited_categories=dict(self._edited_categories),
        )

    def _load_state(self, state: Snapshot) -> None:
        known = self._records
        self._completed = {i for i in state.completed_ids if i in known}
        self._edited_terms = {i: t for i, t in state.edited_terms.items() if i in known}
        self._edited_categories = {}
        for i, tags in state.edited_categories.items():
            if i not in known:
                continue
            valid = [t for t in tags if t in CATEGORIES]
            self._edited_categories[i] = tuple(dict.fromkeys(valid)) or (FALLBACK_CATEGORY,)
        dropped = len(state.completed_ids) - len(self._completed)
        if dropped:
            log.info("Ignored %d completed ids that are not in this dataset", dropped)

    def replace_state(self, state: Snapshot) -> None:
        """Swap in a whole snapshot (a newer remote state); selection is kept."""
        self._load_state(state)
        self._emit("replace_state", persist=False)
