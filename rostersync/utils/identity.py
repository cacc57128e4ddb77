"""Canonical artist identity (slug) resolution.

Two upstream spellings of the same artist ("Rhi'N'B", "RhiNB", "Rhi N B")
must collapse to one key, and that key must agree with the slug WordPress
assigns to the artist page, otherwise the diff against the published
catalog produces duplicates.  The rule is:

1. Lowercase.
2. Fold letters NFD cannot decompose (ø, œ, æ, ß, ł, þ ...) and a few
   currency symbols through ``_CHAR_MAP``, then NFD-decompose and drop
   combining marks (U+0300 - U+036F).
3. Delete apostrophe-family characters outright.
4. Turn whitespace runs into a single dash.  A run of two or more
   single-letter words is first glued onto the word before it, so a
   spaced-out spelling like "Rhi N B" resolves like "RhiNB".
5. Replace anything outside ``[a-z0-9-]`` with a dash.
6. Collapse repeated dashes.
7. Trim dashes at both ends.

An empty result means the name is unresolvable (e.g. "!!!"); such names
are never used as a dedup key and never enter the research queue.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Literal

from rapidfuzz import fuzz, process

AmpersandPolicy = Literal["dash", "and"]

# Characters that survive NFD decomposition unchanged.  Keys are lowercase
# except where str.lower() does not produce the mapped form.
_CHAR_MAP: dict[str, str] = {
    "ø": "o",
    "œ": "oe",
    "æ": "ae",
    "ß": "ss",
    "ẞ": "ss",
    "đ": "d",
    "ł": "l",
    "ı": "i",
    "ð": "d",
    "þ": "th",
    "ħ": "h",
    "ŧ": "t",
    "ŋ": "n",
    "ĳ": "ij",
    "ﬁ": "fi",
    "ﬂ": "fl",
    # currency / special
    "$": "s",
    "€": "e",
    "¢": "c",
    "£": "l",
    "¥": "y",
}

# ' ‘ ’ ‛ ` ´ ʼ ′
_APOSTROPHES = "'\u2018\u2019\u201b`\u00b4\u02bc\u2032"
_COMBINING_RE = re.compile(r"[\u0300-\u036f]")
_APOSTROPHE_RE = re.compile(f"[{re.escape(_APOSTROPHES)}]")
_INVALID_RE = re.compile(r"[^a-z0-9-]")
_DASHES_RE = re.compile(r"-+")


def normalize(name: object, ampersand: AmpersandPolicy = "dash") -> str:
    """Return the canonical identity (slug) for an artist name.

    Total: ``None``, non-strings and empty strings yield ``""``.

    Args:
        name: The display name to normalize.
        ampersand: ``"dash"`` treats ``&`` like any other separator
            ("Earth, Wind & Fire" -> ``earth-wind-fire``); ``"and"`` spells
            it out (``earth-wind-and-fire``).

    Returns:
        The slug, or ``""`` when the name is unresolvable.
    """
    if not isinstance(name, str) or not name:
        return ""

    text = name.lower()
    text = "".join(_CHAR_MAP.get(ch, ch) for ch in text)
    text = unicodedata.normalize("NFD", text)
    text = _COMBINING_RE.sub("", text)
    text = _APOSTROPHE_RE.sub("", text)

    if ampersand == "and":
        text = text.replace("&", " and ")

    text = "-".join(_glue_initials(text.split()))
    text = _INVALID_RE.sub("-", text)
    text = _DASHES_RE.sub("-", text)
    return text.strip("-")


def same_identity(a: object, b: object, ampersand: AmpersandPolicy = "dash") -> bool:
    """Return ``True`` when *a* and *b* resolve to the same non-empty slug."""
    slug = normalize(a, ampersand)
    return slug != "" and slug == normalize(b, ampersand)


def _glue_initials(words: list[str]) -> list[str]:
    """Join runs of two or more single-letter words onto the preceding word.

    ``["rhi", "n", "b"]`` becomes ``["rhinb"]`` while ``["malcolm", "x"]``
    and ``["a", "tribe", "called", "quest"]`` are left alone.
    """
    result: list[str] = []
    i = 0
    while i < len(words):
        j = i
        while j < len(words) and len(words[j]) == 1 and words[j].isalpha():
            j += 1
        if j - i >= 2:
            run = "".join(words[i:j])
            if result:
                result[-1] += run
            else:
                result.append(run)
            i = j
        else:
            result.append(words[i])
            i += 1
    return result


class IdentityResolver:
    """Slug resolver bound to one ``&`` policy.

    The orchestrator and the duplicate audit share one instance so the
    whole run agrees on a single rule.
    """

    def __init__(self, ampersand: AmpersandPolicy = "dash") -> None:
        self._ampersand: AmpersandPolicy = ampersand

    @property
    def ampersand(self) -> AmpersandPolicy:
        return self._ampersand

    def normalize(self, name: object) -> str:
        return normalize(name, self._ampersand)

    def same_identity(self, a: object, b: object) -> bool:
        return same_identity(a, b, self._ampersand)


def find_near_duplicates(
    identity: str,
    identities: list[str],
    threshold: float = 0.9,
) -> list[tuple[str, float]]:
    """Return identities that are similar to *identity* but not equal to it.

    Uses rapidfuzz ``ratio`` on the slugs themselves, which catches typos
    and transpositions ("royksopp" / "roykssopp") the slug rule keeps apart.

    Args:
        identity: The canonical identity to compare.
        identities: Candidate identities.
        threshold: Minimum similarity (0.0 - 1.0).

    Returns:
        ``(identity, score)`` pairs, best match first.
    """
    if not identity:
        return []
    others = [other for other in identities if other and other != identity]
    matches = process.extract(
        identity,
        others,
        scorer=fuzz.ratio,
        score_cutoff=threshold * 100,
        limit=None,
    )
    return [(match, score / 100.0) for match, score, _ in matches]
