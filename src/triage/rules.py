# triage/rules.py
"""
Heuristic classification of failed search terms.

Every function here is pure and total over strings. The issue list is the
shared input of the categorizer, the fix advisor and the priority ranker; it is
always derived from the term itself (and cached), never passed around where it
could go stale.
"""
from __future__ import annotations
import re
from functools import lru_cache
from typing import Iterable, List, Sequence, Tuple

from . import config as CFG

# (pattern, issue tag); evaluated in order, every hit is reported
_TYPO_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"ranun[^c]", re.I), "Ranunculus misspelling"),
    (re.compile(r"hydra[^n]", re.I), "Hydrangea misspelling"),
    (re.compile(r"lisian[^t]", re.I), "Lisianthus misspelling"),
    (re.compile(r"delphi?[^n]", re.I), "Delphinium misspelling"),
    (re.compile(r"eucal[^y]", re.I), "Eucalyptus misspelling"),
    (re.compile(r"alstro[^e]", re.I), "Alstroemeria misspelling"),
    (re.compile(r"lavendar", re.I), "Lavender misspelling"),
    (re.compile(r"lillies", re.I), "Lilies misspelling"),
]

_WRAPPED_IN_QUOTES = re.compile(r'".*"')
_DATE = re.compile(CFG.DATE_PATTERN)

# (keywords, category); first group with a hit wins
_KEYWORD_GROUPS: List[Tuple[Tuple[str, ...], str]] = [
    (CFG.ASSORTMENT_KEYWORDS, "missing-assortment"),
    (CFG.BBD_KEYWORDS, "bbd"),
    (CFG.SEASONAL_KEYWORDS, "seasonal"),
    (CFG.NOT_AVAILABLE_KEYWORDS, "not-available"),
    (CFG.SYNONYM_KEYWORDS, "synonym"),
    (CFG.UNKNOWN_KEYWORDS, "unknown"),
]

# Dedicated corrected-spelling advice, checked in this order
_SPELLING_ADVICE = ("Ranunculus", "Hydrangea", "Lisianthus")


def _mentions(issues: Iterable[str], *needles: str) -> bool:
    return any(n in i for i in issues for n in needles)


@lru_cache(maxsize=65536)
def identify_issues(term: str) -> Tuple[str, ...]:
    issues: List[str] = []

    # formatting
    if '"' in term and not _WRAPPED_IN_QUOTES.fullmatch(term):
        issues.append("Unmatched quotes")
    if "(" in term and ")" not in term:
        issues.append("Unclosed parentheses")
    if "[" in term and "]" not in term:
        issues.append("Unclosed brackets")
    if term.startswith('"') and not term.endswith('"'):
        issues.append("Incomplete quotes")

    # spacing
    if term.startswith(" ") or term.endswith(" "):
        issues.append("Leading/trailing spaces")
    if "  " in term:
        issues.append("Multiple consecutive spaces")

    # common typos
    for pattern, issue in _TYPO_PATTERNS:
        if pattern.search(term):
            issues.append(issue)

    return tuple(issues)


def _keyword_category(term: str) -> str | None:
    t = term.lower().strip()
    for keywords, category in _KEYWORD_GROUPS:
        if any(k in t for k in keywords):
            return category
        if category == "bbd" and _DATE.search(t):
            return category
    return None


def categorize(term: str) -> str:
    """Pick the single primary category; issue-derived tiers outrank keywords."""
    issues = identify_issues(term)

    if _mentions(issues, "quotes", "parentheses", "brackets"):
        return "formatting"
    if _mentions(issues, "Incomplete"):
        return "incomplete"
    if _mentions(issues, "misspelling"):
        return "typo"
    if _mentions(issues, "spaces"):
        return "spacing"

    return _keyword_category(term) or "typo"


def suggest_fix(term: str) -> str:
    issues = identify_issues(term)

    if issues:
        if _mentions(issues, "quotes"):
            return "Remove quotes or properly close them"
        if _mentions(issues, "parentheses"):
            return "Add missing closing parenthesis"
        if _mentions(issues, "spaces"):
            return "Trim whitespace and normalize spacing"
        for name in _SPELLING_ADVICE:
            if _mentions(issues, name):
                return f'Correct spelling to "{name.lower()}"'
        if _mentions(issues, "misspelling"):
            return "Fix spelling error"

    category = categorize(term)
    if category == "synonym":
        return "Create synonym mapping or redirect"
    if category == "unknown":
        return "Investigate term - may need removal"
    return "Review and correct as needed"


def get_priority(count: int, issues: Sequence[str]) -> str:
    if count >= CFG.CRITICAL_COUNT:
        return "critical"
    if count >= CFG.HIGH_COUNT:
        return "high"
    # several problems in one term escalate it regardless of traffic
    if len(issues) > 1:
        return "high"
    if count >= CFG.MEDIUM_COUNT:
        return "medium"
    return "low"
