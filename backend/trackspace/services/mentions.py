"""
@mention resolution for comment text.

A mention is "@" followed by a project member's display name, matched
exactly but case-insensitively and ending on a word boundary. "@David"
does not reach a member called "David Lee"; "@David Lee" does. When
several names match at the same "@", the longest one wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from uuid import UUID


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def find_mentions(content: str, members: Mapping[UUID, str]) -> set[UUID]:
    """Return the ids of members whose display name is @-mentioned in content."""
    by_name: dict[str, set[UUID]] = {}
    for user_id, display_name in members.items():
        name = (display_name or "").strip().lower()
        if name:
            by_name.setdefault(name, set()).add(user_id)

    if not by_name or "@" not in content:
        return set()

    # Longest first so "David Lee" beats "David" at the same position
    names = sorted(by_name, key=len, reverse=True)
    text = content.lower()
    found: set[UUID] = set()

    position = text.find("@")
    while position != -1:
        preceded_by_word = position > 0 and _is_word_char(text[position - 1])
        if not preceded_by_word:
            start = position + 1
            for name in names:
                end = start + len(name)
                if text.startswith(name, start) and (
                    end == len(text) or not _is_word_char(text[end])
                ):
                    found |= by_name[name]
                    break
        position = text.find("@", position + 1)

    return found
