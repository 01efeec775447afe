"""
Search-term triage

Classifies failed search terms with fixed heuristics, proposes a cleaned term
for each, and keeps operator corrections in an overlay that can be shared
through a snapshot store.

Main entry points:
    Engine                  load a terms file, query rows/stats, export
    identify_issues(term)   ordered issue tags
    categorize(term)        primary category
    clean_term(term)        proposed replacement

Example Usage:
    from triage import Engine

    eng = Engine()
    eng.load("no_results_terms_clean.json", db_dsn="memory://")
    for row in eng.rows(category="typo")[:10]:
        print(row.record.raw_term, "->", row.proposed_term)
    eng.shutdown()
"""

from .engine import Engine
from .normalize import clean_term
from .rules import categorize, get_priority, identify_issues, suggest_fix

__version__ = "1.0.0"
__all__ = [
    "Engine",
    "categorize",
    "clean_term",
    "get_priority",
    "identify_issues",
    "suggest_fix",
]
