"""Derived document fields.

word_count counts non-whitespace characters, which is the natural unit for
CJK text and a stable proxy for length elsewhere.
"""

import math

EXCERPT_ELLIPSIS = "..."


def count_words(content: str) -> int:
    """Count non-whitespace characters of the content."""
    return sum(1 for ch in content if not ch.isspace())


def derive_excerpt(content: str, length: int) -> str | None:
    """Build an excerpt from the first `length` characters of collapsed content.

    Returns None for blank content.
    """
    collapsed = " ".join(content.split())
    if not collapsed:
        return None
    if len(collapsed) <= length:
        return collapsed
    return collapsed[:length].rstrip() + EXCERPT_ELLIPSIS


def reading_time_minutes(word_count: int, chars_per_minute: int) -> int:
    """Estimated reading time in whole minutes, never less than one."""
    return max(1, math.ceil(word_count / chars_per_minute))
