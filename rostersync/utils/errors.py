"""Custom exception hierarchy for rostersync.

All application exceptions inherit from :class:`RosterSyncError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "spotify", "wordpress", "anthropic") caused the
failure.

The hierarchy is organized by how the sync pipeline reacts to each error:

    RosterSyncError  (base -- catch-all for any rostersync error)
    +-- ConflictError            (a run is already holding the sync lock)
    +-- ConfigurationError       (missing credentials / config, fatal)
    +-- RateLimitError           (quota exhausted after retries)
    +-- TransientNetworkError    (network failure after retries)
    +-- ProviderUnavailableError (provider rejected every credential)
    +-- ParseError               (malformed upstream response)
    +-- DuplicateRaceError       (artist appeared in the catalog mid-run)
    +-- InvalidTransitionError   (research queue state-machine violation)
    +-- ResearchError            (web research / synthesis failure)
    +-- LLMError                 (any LLM API call failure)
    +-- ContentGenerationError   (bilingual description generation)
    +-- PublishError             (publishing to the catalog failed)
    |   +-- PartialPublishError  (one locale of the pair was created)
    +-- PipelineError            (orchestration failure)

Per-artist errors are recorded in the run report; ``ConflictError``,
``ConfigurationError`` and ``InvalidTransitionError`` abort the run.
"""


class RosterSyncError(Exception):
    """Base exception for all rostersync errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[spotify] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Run-level errors (abort before or instead of a run)
# ---------------------------------------------------------------------------

class ConflictError(RosterSyncError):
    """Raised when a sync run is requested while another run holds the lock."""

    def __init__(
        self,
        message: str = "A sync run is already in progress",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RosterSyncError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidTransitionError(RosterSyncError):
    """Raised when a research queue entry is moved along an illegal edge.

    Legal edges are ``pending -> processing`` and
    ``processing -> completed | failed``.  Anything else is a programming
    error and must never be swallowed by the per-artist error boundary.
    """

    def __init__(
        self,
        message: str = "Invalid research queue transition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(RosterSyncError):
    """Raised when pipeline orchestration fails outside a single artist."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class RateLimitError(RosterSyncError):
    """Raised when an API rate limit is still exceeded after all retries."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TransientNetworkError(RosterSyncError):
    """Raised when a provider stays unreachable after all retries."""

    def __init__(
        self,
        message: str = "Network request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(RosterSyncError):
    """Raised when a provider answers with an error for every credential.

    ``status_code`` holds the last HTTP status seen, when there was one.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code


class ParseError(RosterSyncError):
    """Raised when an upstream response cannot be parsed into a model."""

    def __init__(
        self,
        message: str = "Malformed upstream response",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(RosterSyncError):
    """Raised when an LLM API call fails or returns no text."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Per-artist stage errors
# ---------------------------------------------------------------------------

class DuplicateRaceError(RosterSyncError):
    """Raised when the live catalog re-check finds the artist already published.

    The orchestrator records the artist as skipped, not failed.
    """

    def __init__(
        self,
        message: str = "Artist was published by another process",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ResearchError(RosterSyncError):
    """Raised when web research or research synthesis fails."""

    def __init__(
        self,
        message: str = "Artist research failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ContentGenerationError(RosterSyncError):
    """Raised when the bilingual description cannot be generated."""

    def __init__(
        self,
        message: str = "Content generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PublishError(RosterSyncError):
    """Raised when publishing an artist page pair fails."""

    def __init__(
        self,
        message: str = "Publishing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PartialPublishError(PublishError):
    """Raised when only some locales of a bilingual pair were created.

    Nothing is rolled back.  ``created`` maps each created locale to its
    page id and ``missing`` lists the locales still to publish, so an
    operator can re-run the publisher for exactly those locales.
    """

    def __init__(
        self,
        message: str = "Bilingual pair only partially published",
        provider_name: str | None = None,
        created: dict[str, int] | None = None,
        missing: list[str] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._created = dict(created or {})
        self._missing = list(missing or [])

    @property
    def created(self) -> dict[str, int]:
        return dict(self._created)

    @property
    def missing(self) -> list[str]:
        return list(self._missing)
