"""Unit tests for text quality checks, LLM JSON extraction and the
fallback/research text renderers."""

from __future__ import annotations

import pytest

from rostersync.models.research import ResearchResult
from rostersync.services.research_formatter import build_fallback_description, format_research_text
from rostersync.utils.llm_json import parse_json_object
from rostersync.utils.text_quality import dedupe, find_repetitions, has_repetition, join_human
from tests.conftest import make_candidate, make_research


# ======================================================================
# text_quality
# ======================================================================


class TestRepetition:
    @pytest.mark.parametrize(
        "text",
        [
            "Electronic et Electronic",
            "house and House",
            "techno, techno",
            "disco / disco",
            "ambient ou ambient",
            "a techno techno set",
        ],
    )
    def test_detects_repeats(self, text: str) -> None:
        assert has_repetition(text) is True

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "Deep house and tech house",
            "Electronic et techno",
            "DJ DJ",  # two-letter tokens are ignored
        ],
    )
    def test_accepts_clean_text(self, text: str) -> None:
        assert has_repetition(text) is False

    def test_find_returns_fragment(self) -> None:
        assert find_repetitions("Style: Electronic et Electronic music") == ["Electronic et Electronic"]


class TestDedupe:
    def test_casefold_keeps_first_spelling(self) -> None:
        assert dedupe(["House", "house ", "", "Techno", "HOUSE"]) == ["House", "Techno"]

    def test_skips_non_strings(self) -> None:
        assert dedupe(["a", None, 3, "b"]) == ["a", "b"]  # type: ignore[list-item]


class TestJoinHuman:
    def test_shapes(self) -> None:
        assert join_human([], "and") == ""
        assert join_human(["techno"], "and") == "techno"
        assert join_human(["techno", "house"], "et") == "techno et house"
        assert join_human(["a", "b", "c"], "and") == "a, b and c"


# ======================================================================
# llm_json
# ======================================================================


class TestParseJsonObject:
    def test_plain_object(self) -> None:
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self) -> None:
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_preamble_and_trailer(self) -> None:
        assert parse_json_object('Here it is: {"a": {"b": 2}} Hope that helps!') == {"a": {"b": 2}}

    @pytest.mark.parametrize("response", ["no json here", "[1, 2]", "{not valid}"])
    def test_invalid_raises_value_error(self, response: str) -> None:
        with pytest.raises(ValueError):
            parse_json_object(response)


# ======================================================================
# research_formatter
# ======================================================================


class TestFormatResearchText:
    def test_full_result(self) -> None:
        text = format_research_text(
            make_research(
                "kavinsky",
                collaborations=["SebastiAn", "Lovefoxxx"],
                festivals=["Coachella"],
                achievements=["Drive soundtrack"],
            )
        )
        assert "Nationality/Origin: French (Paris, France)" in text
        assert "Record Labels: Ed Banger" in text
        assert "Musical Style: filtered house" in text
        assert "Notable Collaborations: SebastiAn, Lovefoxxx" in text
        assert "Festivals/Performances: Coachella" in text
        assert "  - Drive soundtrack" in text
        assert text.endswith("Biography: A producer from Paris.")

    def test_empty_result(self) -> None:
        assert format_research_text(ResearchResult(canonical_identity="x")) == "Limited information available."

    def test_origin_without_nationality(self) -> None:
        text = format_research_text(ResearchResult(canonical_identity="x", origin="Oslo"))
        assert text == "Nationality/Origin: Unknown (Oslo)"


class TestFallbackDescription:
    def test_duplicate_genres_are_not_repeated(self) -> None:
        candidate = make_candidate("Vitalic", genres=["Electronic", "electronic", "ELECTRONIC"])
        text = build_fallback_description(candidate)
        assert "Electronic" in text
        assert not has_repetition(text)

    def test_touching_genres_are_separated(self) -> None:
        candidate = make_candidate("Folamour", genres=["house", "house music", "deep house"])
        text = build_fallback_description(candidate)
        assert not has_repetition(text)

    def test_no_genres_uses_default(self) -> None:
        text = build_fallback_description(make_candidate("Unknown Act", genres=[]))
        assert "electronic music" in text

    def test_artist_named_after_genre(self) -> None:
        text = build_fallback_description(make_candidate("Techno", genres=["techno"]))
        assert not has_repetition(text)

    def test_popularity_wording(self) -> None:
        assert "growing recognition" in build_fallback_description(make_candidate("A1", popularity=80))
        assert "underground following" in build_fallback_description(make_candidate("A1", popularity=10))
