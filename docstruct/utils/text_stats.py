"""Word and character counting shared by section records and rows."""

from __future__ import annotations

from typing import Optional, Tuple


def count_words(text: Optional[str]) -> int:
    """Count whitespace-delimited tokens; blank text counts as zero."""
    if not text or not text.strip():
        return 0
    return len(text.split())


def count_chars(text: Optional[str]) -> int:
    return len(text) if text else 0


def content_stats(text: Optional[str]) -> Tuple[int, int]:
    """Return ``(word_count, char_count)`` for a block of content."""
    return count_words(text), count_chars(text)
