"""Tagged results for calls into the publishing system.

WordPress endpoints (core REST routes and the site's custom ``dd-api``
routes) answer in several shapes: a JSON post object, a ``{"success":
true, "id": ...}`` envelope, a WP error object, or plain text such as
``"Post created ID 8031"``.  The WordPress client parses every response
into exactly one of these variants, so downstream code matches on the
type instead of probing dictionaries.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class IdResult(BaseModel):
    """The call created or located an object with this numeric id."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["id"] = "id"
    id: int
    data: dict[str, Any] = Field(default_factory=dict)


class TextResult(BaseModel):
    """The call succeeded but returned no recognisable id."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class ErrorResult(BaseModel):
    """The call failed; ``status_code`` is the HTTP status when there was one."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    message: str
    status_code: int | None = None


ToolResult = Annotated[Union[IdResult, TextResult, ErrorResult], Field(discriminator="kind")]
