# triage/export.py
from __future__ import annotations
import csv
import io
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .config import NO_CHANGE
from .models import EffectiveRecord

CSV_COLUMNS = [
    "ID",
    "Fixed",
    "Current Database Term",
    "Failed Searches",
    "Issue Type",
    "Specific Problems",
    "Recommended Action",
    "Proposed Corrected Term",
    "Priority",
]


def _sql_str(s: str) -> str:
    return s.replace("'", "''")


def _sql_comment(s: str) -> str:
    # a line break would end the comment early
    return " ".join(s.splitlines())


def csv_report(rows: Iterable[EffectiveRecord]) -> str:
    """One fully-quoted row per record, in the order given."""
    buf = io.StringIO()
    w = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    w.writerow(CSV_COLUMNS)
    for e in rows:
        r = e.record
        proposed = e.proposed_term
        if proposed == r.raw_term or proposed == NO_CHANGE:
            proposed = ""
        w.writerow([
            r.id,
            "Yes" if e.completed else "No",
            r.raw_term,
            r.occurrence_count,
            ", ".join(e.categories),
            "; ".join(r.issues),
            r.suggested_fix,
            proposed,
            r.priority.upper(),
        ])
    return buf.getvalue()


def sql_statement(e: EffectiveRecord) -> str:
    r = e.record
    stmt = (
        f"-- Fix: {_sql_comment(r.raw_term)} -> {_sql_comment(e.proposed_term)} ({r.occurrence_count} failed searches)\n"
        f"UPDATE search_terms SET term = '{_sql_str(e.proposed_term)}' "
        f"WHERE term = '{_sql_str(r.raw_term)}';"
    )
    if e.completed:
        stmt += " -- COMPLETED"
    return stmt


def sql_script(rows: Iterable[EffectiveRecord], *, generated: Optional[datetime] = None) -> str:
    """UPDATE statements for every record whose effective term differs from the raw one."""
    fixes: List[EffectiveRecord] = [e for e in rows if e.needs_change]
    done = sum(1 for e in fixes if e.completed)
    ts = (generated or datetime.now(timezone.utc)).isoformat()
    header = (
        "-- Database Cleanup Script\n"
        f"-- Generated: {ts}\n"
        f"-- Total terms to fix: {len(fixes)}\n"
        f"-- Completed: {done}\n"
        f"-- Remaining: {len(fixes) - done}\n"
    )
    return header + "\n" + "\n\n".join(sql_statement(e) for e in fixes) + "\n"
