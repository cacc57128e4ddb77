"""Bilingual artist description generation.

One LLM call produces every configured locale at once, so the French page
is a natural adaptation of the English one rather than a separate
interpretation of the research.  The answer must contain, per locale, an
HTML ``description``, a ~150 character ``meta_description`` and a
``role``.  A missing or empty locale fails the whole generation: pages are
only ever published as a complete pair.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from rostersync.interfaces.content_generator import IContentGenerator
from rostersync.interfaces.llm_provider import ILLMProvider
from rostersync.models.artist import ArtistCandidate
from rostersync.models.content import GeneratedContent, LocaleContent
from rostersync.utils.errors import ContentGenerationError, LLMError
from rostersync.utils.llm_json import parse_json_object
from rostersync.utils.text_quality import find_repetitions

logger = structlog.get_logger(logger_name=__name__)

_LANGUAGE_NAMES = {"en": "English", "fr": "French", "de": "German", "es": "Spanish", "nl": "Dutch"}

_SYSTEM_PROMPT = (
    "You write artist biographies for an electronic music record label's website. "
    "Energetic, modern tone for electronic music fans. Answer with JSON only."
)

_USER_PROMPT_TEMPLATE = """\
Create artist descriptions in {language_list} for the {label_name} website.

Artist: {name}
Spotify genres: {genres}
Popularity: {popularity}/100

Research findings:
{research_text}

For each language write 3-4 paragraphs:
  - Paragraph 1: introduction, genres in <strong> tags
  - Paragraph 2: labels, collaborations, notable support
  - Paragraph 3: live performances and festivals
  - Paragraph 4: the artist's place on the {label_name} roster
Separate paragraphs with <br><br>. Use <strong> only for genres and labels.
Every language after the first is a natural adaptation, not a literal translation.
Stay faithful to the research findings; do not invent facts.
Never repeat a word around "and"/"et" (no "House and House").

Return exactly this JSON, one key per language code:
{schema}"""


class LLMContentGenerator(IContentGenerator):
    """IContentGenerator producing every locale in one LLM call.

    Parameters
    ----------
    llm:
        Completion backend.
    locales:
        ``publishing.locales`` from the YAML config; each entry may carry a
        default ``role_label``.
    label_name:
        Record label named in the descriptions.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        locales: dict[str, dict[str, str]],
        label_name: str = "the label",
        max_tokens: int = 2500,
    ) -> None:
        self._llm = llm
        self._locales = dict(locales)
        self._label_name = label_name
        self._max_tokens = max_tokens

    async def generate(self, candidate: ArtistCandidate, research_text: str) -> GeneratedContent:
        try:
            response = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=self._build_prompt(candidate, research_text),
                temperature=0.6,
                max_tokens=self._max_tokens,
            )
            data = parse_json_object(response)
        except LLMError as exc:
            raise ContentGenerationError(
                message=f"Description generation failed for {candidate.display_name}: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc
        except ValueError as exc:
            raise ContentGenerationError(
                message=f"Unparseable descriptions for {candidate.display_name}: {exc}",
                provider_name=self._llm.get_provider_name(),
            ) from exc

        locales: dict[str, LocaleContent] = {}
        for locale, settings in self._locales.items():
            locales[locale] = self._parse_locale(candidate, locale, data.get(locale), settings)
        return GeneratedContent(locales=locales)

    def get_provider_name(self) -> str:
        return f"llm_content:{self._llm.get_provider_name()}"

    def is_available(self) -> bool:
        return self._llm.is_available()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_prompt(self, candidate: ArtistCandidate, research_text: str) -> str:
        schema = {
            locale: {
                "description": "HTML description",
                "meta_description": "~150 character meta description",
                "role": settings.get("role_label", "DJ & Producer"),
            }
            for locale, settings in self._locales.items()
        }
        languages = [_LANGUAGE_NAMES.get(locale, locale) for locale in self._locales]
        return _USER_PROMPT_TEMPLATE.format(
            language_list=" and ".join(languages),
            label_name=self._label_name,
            name=candidate.display_name,
            genres=", ".join(candidate.genres) or "Electronic",
            popularity=candidate.popularity,
            research_text=research_text,
            schema=json.dumps(schema, indent=2, ensure_ascii=False),
        )

    def _parse_locale(
        self,
        candidate: ArtistCandidate,
        locale: str,
        payload: Any,
        settings: dict[str, str],
    ) -> LocaleContent:
        if not isinstance(payload, dict) or not str(payload.get("description") or "").strip():
            raise ContentGenerationError(
                message=f"No '{locale}' description generated for {candidate.display_name}",
                provider_name=self._llm.get_provider_name(),
            )
        body = str(payload["description"]).strip()
        repetitions = find_repetitions(body)
        if repetitions:
            logger.warning(
                "generated_text_repetition",
                artist=candidate.display_name,
                locale=locale,
                fragments=repetitions[:3],
            )
        return LocaleContent(
            body=body,
            summary=str(payload.get("meta_description") or "").strip(),
            role_label=str(payload.get("role") or settings.get("role_label", "")).strip(),
        )
