"""
Core Utility Functions.

Text helpers shared by need detection, scoring and search. All
matching in the engine is case-insensitive substring containment over
values produced by normalize().
"""

import math
import re
from typing import Any, Iterable, List, Optional


_LABEL_SEPARATORS = re.compile(r"[_-]")


def normalize(value: Any) -> str:
    """Lowercase string form of value; None becomes ''."""
    if value is None:
        return ""
    return str(value).lower()


def title_case(value: Any) -> str:
    """
    Turn a raw descriptor into a display label.

    Underscores and hyphens become spaces, each word is capitalized and
    the rest lowercased: "supply-chain_ops" -> "Supply Chain Ops".
    """
    if value is None:
        return ""
    words = _LABEL_SEPARATORS.sub(" ", str(value)).split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words if word)


def contains_any(values: Iterable[str], needle: str) -> bool:
    """True if any normalized value contains needle (already normalized)."""
    return any(needle in value for value in values)


def dedupe_labels(labels: Iterable[str]) -> List[str]:
    """Keep the first occurrence of each label, compared case-insensitively."""
    seen = set()
    result = []
    for label in labels:
        key = normalize(label)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(label)
    return result


def to_finite_float(value: Any) -> Optional[float]:
    """
    Coerce value to a finite float, or None.

    Booleans are rejected so a stray True never counts as 1.0.
    """
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def to_non_negative_int(value: Any) -> int:
    """Coerce persisted counters, treating garbage as 0."""
    number = to_finite_float(value)
    if number is None or number <= 0:
        return 0
    return int(number)
