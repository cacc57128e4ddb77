"""Utility modules for rostersync.

- **errors** -- Domain exception hierarchy rooted at RosterSyncError; each
  failure kind has its own class so the orchestrator decides retry, skip
  or abort without string-matching messages.
- **identity** -- Canonical artist slug used as the deduplication key.
- **llm_json** -- JSON extraction from fenced / chatty LLM output.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **rate_limiter** -- Retry/backoff with credential-pool rotation, plus a
  fixed-interval throttle for sequential workflows.
- **text_quality** -- Adjacent-repetition detection and order-preserving
  de-duplication for generated descriptions.
"""

from rostersync.utils.errors import (
    ConfigurationError,
    ConflictError,
    ContentGenerationError,
    DuplicateRaceError,
    InvalidTransitionError,
    LLMError,
    ParseError,
    PartialPublishError,
    PipelineError,
    ProviderUnavailableError,
    PublishError,
    RateLimitError,
    ResearchError,
    RosterSyncError,
    TransientNetworkError,
)
from rostersync.utils.identity import IdentityResolver, find_near_duplicates, normalize, same_identity
from rostersync.utils.logging import configure_logging, get_logger
from rostersync.utils.rate_limiter import CredentialPool, RateLimiter, RetryPolicy, Throttle

__all__ = [
    "ConfigurationError",
    "ConflictError",
    "ContentGenerationError",
    "CredentialPool",
    "DuplicateRaceError",
    "IdentityResolver",
    "InvalidTransitionError",
    "LLMError",
    "ParseError",
    "PartialPublishError",
    "PipelineError",
    "ProviderUnavailableError",
    "PublishError",
    "RateLimitError",
    "RateLimiter",
    "ResearchError",
    "RetryPolicy",
    "RosterSyncError",
    "Throttle",
    "TransientNetworkError",
    "configure_logging",
    "find_near_duplicates",
    "get_logger",
    "normalize",
    "same_identity",
]
