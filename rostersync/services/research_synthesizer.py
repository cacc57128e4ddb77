"""LLM-backed research synthesis.

Feeds the raw web results for one artist to the LLM and asks for a fixed
JSON shape (nationality, origin, labels, style, collaborations,
achievements, festivals, bio, social_links).  Two guards against
hallucination:

- the prompt restricts the model to the supplied results, and
- social links are kept only when the exact URL appears in those results.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from rostersync.interfaces.llm_provider import ILLMProvider
from rostersync.interfaces.synthesis_provider import ISynthesisProvider
from rostersync.interfaces.web_search_provider import SearchResult
from rostersync.models.artist import ArtistCandidate
from rostersync.models.research import ResearchResult
from rostersync.utils.errors import ParseError
from rostersync.utils.llm_json import parse_json_object

_SYSTEM_PROMPT = (
    "You are a music journalist specialising in electronic music. "
    "You extract facts from web search results and answer with JSON only."
)

_USER_PROMPT_TEMPLATE = """\
Based on these web search results about {name}, extract and structure key information.

{results}

Spotify info:
- Genres: {genres}
- Popularity: {popularity}/100

Return exactly this JSON object:
{{
  "nationality": "...",
  "origin": "city, country",
  "labels": ["label1", "label2"],
  "style": "brief description of musical style",
  "collaborations": ["artist1", "artist2"],
  "achievements": ["achievement1"],
  "festivals": ["festival1"],
  "bio": "2-3 sentence biography",
  "social_links": {{
    "soundcloud": "", "instagram": "", "facebook": "", "twitter": ""
  }}
}}

Rules:
- Use ONLY the search results above. Use null or [] for anything not found.
- For social_links, only copy URLs that appear verbatim in the results; otherwise "".
- Never guess or construct URLs."""

_LIST_FIELDS = ("labels", "collaborations", "achievements", "festivals")
_TEXT_FIELDS = ("nationality", "origin", "style", "bio")


class LLMResearchSynthesizer(ISynthesisProvider):
    """ISynthesisProvider that structures search results with an LLM."""

    def __init__(self, llm: ILLMProvider, max_tokens: int = 1500) -> None:
        self._llm = llm
        self._max_tokens = max_tokens
        self._logger: structlog.BoundLogger = structlog.get_logger(logger_name=__name__)

    async def synthesize(
        self,
        candidate: ArtistCandidate,
        raw_results: list[SearchResult],
    ) -> ResearchResult | None:
        if not raw_results:
            self._logger.info("synthesis_skipped_no_results", artist=candidate.display_name)
            return None

        user_prompt = _USER_PROMPT_TEMPLATE.format(
            name=candidate.display_name,
            results=_format_results(raw_results),
            genres=", ".join(candidate.genres) or "Unknown",
            popularity=candidate.popularity,
        )
        response = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=0.2,
            max_tokens=self._max_tokens,
        )

        try:
            data = parse_json_object(response)
            result = ResearchResult(
                canonical_identity=candidate.canonical_identity,
                social_links=_grounded_links(data.get("social_links"), raw_results),
                **_clean_fields(data),
            )
        except (ValueError, ValidationError) as exc:
            raise ParseError(
                message=f"Malformed research synthesis for {candidate.display_name}: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        if result.is_empty():
            self._logger.info("synthesis_empty", artist=candidate.display_name)
            return None
        return result

    def get_provider_name(self) -> str:
        return f"llm_synthesis:{self._llm.get_provider_name()}"

    def is_available(self) -> bool:
        return self._llm.is_available()


def _format_results(results: list[SearchResult]) -> str:
    lines = []
    for index, result in enumerate(results, start=1):
        lines.append(f"{index}. {result.title}\n   {result.description}\n   Source: {result.url}")
    return "\n\n".join(lines)


def _clean_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Coerce the model's answer into ResearchResult field types."""
    cleaned: dict[str, Any] = {}
    for name in _TEXT_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and value.strip() and value.strip().lower() not in ("null", "unknown", "..."):
            cleaned[name] = value.strip()
    for name in _LIST_FIELDS:
        value = data.get(name)
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            cleaned[name] = [str(item) for item in value if item]
    return cleaned


def _grounded_links(links: Any, results: list[SearchResult]) -> dict[str, str]:
    """Keep only links whose URL occurs in the search results."""
    if not isinstance(links, dict):
        return {}
    corpus = " ".join(f"{r.url} {r.description}" for r in results)
    return {
        platform: url
        for platform, url in links.items()
        if isinstance(url, str) and url and url.rstrip("/") in corpus
    }
