"""Countdown detection for boss announcements.

Pure functions, no I/O. An announcement is any text containing the
trigger keyword; its countdown is the first ``<N> minute(s)`` phrase.
"""

import re

DEFAULT_KEYWORD = "world boss"

_MINUTES_PATTERN = re.compile(r"(\d+)\s*minutes?")


def contains_keyword(text: str, keyword: str = DEFAULT_KEYWORD) -> bool:
    """Case-insensitive keyword test."""
    return keyword.lower() in text.lower()


def detect(text: str, keyword: str = DEFAULT_KEYWORD) -> int | None:
    """Extract the announced countdown in minutes.

    Args:
        text: Raw event text (content plus embed fields).
        keyword: Phrase marking the event class being watched.

    Returns:
        Minutes from the first ``<N> minute(s)`` match, or None when the
        keyword is absent or no duration follows it.
    """
    normalized = text.lower()
    if keyword.lower() not in normalized:
        return None

    match = _MINUTES_PATTERN.search(normalized)
    if match is None:
        return None
    return int(match.group(1))
