"""JSON extraction from free-form LLM responses.

Despite explicit "return only JSON" instructions, models wrap their output
in markdown fences or add a sentence of preamble.  :func:`parse_json_object`
peels both off before handing the text to :func:`json.loads`.
"""

from __future__ import annotations

import json
import re
from typing import Any

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def parse_json_object(response: str) -> dict[str, Any]:
    """Extract the first JSON object from an LLM response.

    Parameters
    ----------
    response:
        Raw LLM response text.

    Returns
    -------
    dict
        The parsed object.

    Raises
    ------
    ValueError
        If no JSON object can be extracted (``json.JSONDecodeError`` is a
        subclass, so callers only need to catch ``ValueError``).
    """
    text = response.strip()

    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    if not text.startswith("{"):
        brace_start = text.find("{")
        brace_end = text.rfind("}")
        if brace_start == -1 or brace_end <= brace_start:
            raise ValueError("No JSON object found in LLM response")
        text = text[brace_start : brace_end + 1]

    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
