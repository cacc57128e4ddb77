"""Plain-text renderings of research data for the content prompt.

:func:`format_research_text` turns a cached :class:`ResearchResult` into
the "research findings" block.  :func:`build_fallback_description` is the
degraded input used when research failed: it is derived from the Spotify
genres and popularity only, and never contains an adjacent repeated
token ("Electronic and Electronic").
"""

from __future__ import annotations

from rostersync.models.artist import ArtistCandidate
from rostersync.models.research import ResearchResult
from rostersync.utils.text_quality import dedupe, has_repetition, join_human

_MAX_LISTED = 5
_DEFAULT_GENRE = "electronic music"
# Spotify popularity above which an artist is described as established.
_GROWING_POPULARITY = 60


def format_research_text(result: ResearchResult) -> str:
    """Render *result* as labelled lines; ``"Limited information available."``
    when nothing was found."""
    lines: list[str] = []

    if result.nationality or result.origin:
        line = f"Nationality/Origin: {result.nationality or 'Unknown'}"
        if result.origin:
            line += f" ({result.origin})"
        lines.append(line)
    if result.labels:
        lines.append(f"Record Labels: {', '.join(result.labels)}")
    if result.style:
        lines.append(f"Musical Style: {result.style}")
    if result.collaborations:
        lines.append(f"Notable Collaborations: {', '.join(result.collaborations[:_MAX_LISTED])}")
    if result.festivals:
        lines.append(f"Festivals/Performances: {', '.join(result.festivals[:_MAX_LISTED])}")
    if result.achievements:
        lines.append("Key Achievements:")
        lines.extend(f"  - {item}" for item in result.achievements[:_MAX_LISTED])
    if result.bio:
        lines.append("")
        lines.append(f"Biography: {result.bio}")

    return "\n".join(lines) if lines else "Limited information available."


def build_fallback_description(candidate: ArtistCandidate) -> str:
    """Describe *candidate* from genres and popularity alone.

    Genres are de-duplicated case-insensitively, and a genre that only
    repeats the previous one's last word ("house", "deep house") is kept
    apart from it, so the output passes :func:`has_repetition`.
    """
    genres = _spread(dedupe(candidate.genres)) or [_DEFAULT_GENRE]
    genre_text = join_human(genres[:3], "and")
    recognition = "growing recognition" if candidate.popularity > _GROWING_POPULARITY else "an underground following"

    text = (
        f"Musical Style: {candidate.display_name} is an artist working in {genre_text}.\n"
        f"Artist Profile: An active name in the {genres[0]} scene with {recognition} "
        "on streaming platforms."
    )
    if has_repetition(text):
        # e.g. an artist named after their genre: drop the genre list.
        text = (
            f"Musical Style: {candidate.display_name} is an electronic music artist.\n"
            f"Artist Profile: An active name with {recognition} on streaming platforms."
        )
    return text


def _spread(genres: list[str]) -> list[str]:
    """Reorder *genres* so no two neighbours end/start with the same word."""
    remaining = list(genres)
    ordered: list[str] = []
    while remaining:
        for index, genre in enumerate(remaining):
            if not ordered or not _touching(ordered[-1], genre):
                ordered.append(remaining.pop(index))
                break
        else:
            # Every remaining genre repeats the previous word; drop the first.
            remaining.pop(0)
    return ordered


def _touching(left: str, right: str) -> bool:
    return left.split()[-1].casefold() == right.split()[0].casefold()
