from __future__ import annotations
import os

# Progress/lifecycle logging (set TRIAGE_VERBOSE=1 to enable)
VERBOSE: bool = os.environ.get("TRIAGE_VERBOSE") == "1"

# Store DSN: "memory://" or "sqlite:///path/to/overrides.sqlite"
DEFAULT_DSN: str = os.environ.get("TRIAGE_DB", "memory://")

# Quiet period (seconds) before a batch of edits is written to the store
SAVE_DEBOUNCE: float = float(os.environ.get("TRIAGE_SAVE_DEBOUNCE", "1.0"))

# Number of leading input records hashed into the dataset key
DATASET_SAMPLE: int = 10

# Shown instead of a proposed term when nothing needs to change
NO_CHANGE: str = "No change needed"

# Priority thresholds (occurrence counts)
CRITICAL_COUNT: int = 20
HIGH_COUNT: int = 10
MEDIUM_COUNT: int = 5

CATEGORIES: tuple[str, ...] = (
    "formatting",
    "incomplete",
    "typo",
    "spacing",
    "synonym",
    "unknown",
    "missing-assortment",
    "bbd",
    "seasonal",
    "not-available",
)
FALLBACK_CATEGORY: str = "unknown"

PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "critical")

# /* ~~~ keyword groups, checked in this order; first hit wins ~~~ */
ASSORTMENT_KEYWORDS = ("assorted", "mixed", "variety", "selection", "bundle", "pack")
BBD_KEYWORDS = ("best before", "best by", "bbd", "expiry", "expiration", "expires", "use by")
SEASONAL_KEYWORDS = (
    "christmas", "xmas", "easter", "valentine", "mothers day", "mother's day",
    "halloween", "thanksgiving", "holiday", "seasonal", "spring", "summer",
    "autumn", "winter",
)
NOT_AVAILABLE_KEYWORDS = (
    "out of stock", "sold out", "unavailable", "not available", "discontinued",
    "no longer",
)
SYNONYM_KEYWORDS = ("butterfly", "wildflowers", "tropicals", "greenery")
UNKNOWN_KEYWORDS = ("moab", "kiera", "cremone", "ofea")

# Date-like fragment (e.g. 12/03/24) marks a best-by term
DATE_PATTERN: str = r"\d{1,2}/\d{1,2}/\d{2,4}"

# Valid sort keys for the merge view
SORT_KEYS: tuple[str, ...] = ("impact", "alphabetical", "category", "priority")
