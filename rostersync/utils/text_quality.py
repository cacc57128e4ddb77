"""Text quality checks for generated artist descriptions.

Template and LLM output both have a habit of repeating a token around a
connector ("Electronic et Electronic", "house, house").  These helpers
detect that pattern so the fallback description can be built without it
and generated content can be flagged in the logs.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

# <word> <connector> <same word>, connectors in both publishing languages.
_CONNECTOR_REPEAT_RE = re.compile(
    r"\b(\w{3,})\b\s*(?:,|\bet\b|\band\b|&|/|\bor\b|\bou\b)\s*\b\1\b",
    re.IGNORECASE,
)
# <word> <same word>
_DIRECT_REPEAT_RE = re.compile(r"\b(\w{3,})\s+\1\b", re.IGNORECASE)


def find_repetitions(text: str) -> list[str]:
    """Return every adjacent repetition found in *text*.

    Args:
        text: Text to scan.

    Returns:
        The matched fragments, e.g. ``["Electronic et Electronic"]``.
    """
    if not text:
        return []
    found = [m.group(0) for m in _CONNECTOR_REPEAT_RE.finditer(text)]
    found.extend(m.group(0) for m in _DIRECT_REPEAT_RE.finditer(text))
    return found


def has_repetition(text: str) -> bool:
    """Return ``True`` if *text* repeats a token adjacently."""
    return bool(find_repetitions(text))


def dedupe(items: Iterable[str], key: Callable[[str], str] = str.casefold) -> list[str]:
    """Drop blank and duplicate strings, keeping first-seen order and spelling."""
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        cleaned = item.strip()
        if not cleaned:
            continue
        marker = key(cleaned)
        if marker in seen:
            continue
        seen.add(marker)
        result.append(cleaned)
    return result


def join_human(items: list[str], connector: str) -> str:
    """Join *items* as ``"a, b <connector> c"``."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} {connector} {items[-1]}"
