from __future__ import annotations
import html
import re
from typing import List, Tuple

# Quote runs and whitespace at either end are peeled off together so that a
# term like '" "x"' cannot expose a fresh quote after the first trim.
_EDGES = re.compile(r'^[\s"]+|[\s"]+$')
_SPACES = re.compile(r"\s+")

# (shape, canonical spelling); applied in order, case-insensitive, all matches
_SPELLING_FIXES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"ranun[^c]", re.I), "ranunculus"),
    (re.compile(r"hydra[^n]", re.I), "hydrangea"),
    (re.compile(r"lisian[^t]", re.I), "lisianthus"),
    (re.compile(r"lavendar", re.I), "lavender"),
    (re.compile(r"lillies", re.I), "lilies"),
    (re.compile(r"alstro[^e]", re.I), "alstroemeria"),
]

_HIGHLIGHT = re.compile(r'(&quot;|\(|\[)')


def clean_term(term: str) -> str:
    """
    Produce the proposed replacement for a raw search term:
      * trim, and drop leading/trailing runs of double quotes
      * collapse every whitespace run to a single space
      * rewrite the known misspelling shapes to their canonical spelling
      * trim again
    The result is a fixed point: clean_term(clean_term(s)) == clean_term(s).
    """
    cleaned = _EDGES.sub("", term)
    cleaned = _SPACES.sub(" ", cleaned)
    for pattern, replacement in _SPELLING_FIXES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned.strip()


def highlight_issues(term: str) -> str:
    """HTML-escape term and wrap the characters that usually break it."""
    escaped = html.escape(term, quote=True)
    return _HIGHLIGHT.sub(
        lambda m: f'<span class="issue-highlight">{m.group(1)}</span>', escaped
    )
