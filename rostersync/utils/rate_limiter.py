"""Retry, backoff and credential rotation for quota-limited HTTP providers.

Spotify and Brave both hand out small per-key quotas, so the deployment
carries a *pool* of credentials per provider.  :class:`RateLimiter` wraps a
single logical request and decides, from the response, what to do next:

    429                 -> sleep Retry-After (or exponential backoff), same key
    other non-2xx       -> rotate to the next key, each key tried once
    transport failure   -> exponential backoff, same key
    2xx / accepted code -> return the response

:class:`Throttle` is the companion policy for *sequential* workflows: it
enforces a fixed minimum interval between consecutive calls so a batch of
requests stays under a provider's published per-second quota.  Intervals
come from :class:`~rostersync.config.settings.Settings`, never from the
call site.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Generic, TypeVar

import httpx
import structlog

from rostersync.utils.errors import (
    ConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
    TransientNetworkError,
)
from rostersync.utils.logging import get_logger

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters shared by every call through one limiter.

    Attributes
    ----------
    max_retries:
        Retries allowed after the first attempt, counted separately for
        rate-limit responses and transport failures.
    base_backoff_seconds:
        First backoff delay; doubled on every further retry.
    max_backoff_seconds:
        Upper bound for computed backoff (not applied to Retry-After).
    """

    max_retries: int = 3
    base_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 60.0

    def backoff(self, attempt: int) -> float:
        """Return the exponential backoff for the *attempt*-th retry (1-based)."""
        delay = self.base_backoff_seconds * (2 ** max(attempt - 1, 0))
        return min(delay, self.max_backoff_seconds)


class CredentialPool(Generic[T]):
    """Ordered, round-robin pool of credentials.

    The current position survives across calls, so once a key has been
    rotated away from, later requests start on the next key.
    """

    def __init__(self, credentials: Iterable[T]) -> None:
        self._credentials: list[T] = list(credentials)
        if not self._credentials:
            raise ConfigurationError(message="Credential pool is empty")
        self._index = 0

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def current(self) -> T:
        return self._credentials[self._index]

    @property
    def index(self) -> int:
        return self._index

    def rotate(self) -> T:
        """Advance to the next credential and return it."""
        self._index = (self._index + 1) % len(self._credentials)
        return self.current


class RateLimiter(Generic[T]):
    """Execute HTTP calls under a :class:`RetryPolicy` and a credential pool.

    Parameters
    ----------
    policy:
        Retry/backoff policy.
    credentials:
        Ordered credentials (API keys, ``(client_id, secret)`` pairs ...).
    provider_name:
        Name attached to raised errors and log events.
    sleep:
        Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        credentials: Sequence[T],
        provider_name: str,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._policy = policy
        self._pool: CredentialPool[T] = CredentialPool(credentials)
        self._provider_name = provider_name
        self._sleep = sleep
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def pool(self) -> CredentialPool[T]:
        return self._pool

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def call(
        self,
        fn: Callable[[T], Awaitable[httpx.Response]],
        accept_statuses: Iterable[int] = (),
    ) -> httpx.Response:
        """Run ``fn(credential)`` until it succeeds or the policy gives up.

        Parameters
        ----------
        fn:
            Coroutine factory issuing one HTTP request with the given
            credential.
        accept_statuses:
            Non-2xx status codes returned to the caller as-is (e.g. ``404``
            when "not found" is a normal answer).

        Returns
        -------
        httpx.Response
            The first successful (or accepted) response.

        Raises
        ------
        RateLimitError
            429 responses persisted beyond ``max_retries``.
        TransientNetworkError
            Transport failures persisted beyond ``max_retries``.
        ProviderUnavailableError
            Every credential in the pool was rejected.
        """
        accepted = frozenset(accept_statuses)
        rate_limited = 0
        transport_failures = 0
        rejected_credentials = 0

        while True:
            credential = self._pool.current
            try:
                response = await fn(credential)
            except httpx.TransportError as exc:
                transport_failures += 1
                if transport_failures > self._policy.max_retries:
                    raise TransientNetworkError(
                        message=f"Request failed after {self._policy.max_retries} retries: {exc}",
                        provider_name=self._provider_name,
                    ) from exc
                delay = self._policy.backoff(transport_failures)
                self._logger.warning(
                    "transport_error_retry",
                    provider=self._provider_name,
                    attempt=transport_failures,
                    backoff_s=delay,
                    error=str(exc),
                )
                await self._sleep(delay)
                continue

            status = response.status_code
            if 200 <= status < 300 or status in accepted:
                return response

            if status == 429:
                rate_limited += 1
                if rate_limited > self._policy.max_retries:
                    raise RateLimitError(
                        message=f"Still rate limited after {self._policy.max_retries} retries",
                        provider_name=self._provider_name,
                    )
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                delay = retry_after if retry_after is not None else self._policy.backoff(rate_limited)
                self._logger.warning(
                    "rate_limited",
                    provider=self._provider_name,
                    attempt=rate_limited,
                    retry_after=retry_after,
                    backoff_s=delay,
                )
                await self._sleep(delay)
                continue

            rejected_credentials += 1
            self._logger.warning(
                "credential_rejected",
                provider=self._provider_name,
                status=status,
                credential_index=self._pool.index,
                pool_size=len(self._pool),
            )
            if rejected_credentials >= len(self._pool):
                raise ProviderUnavailableError(
                    message=f"All {len(self._pool)} credential(s) rejected (last status {status})",
                    provider_name=self._provider_name,
                    status_code=status,
                )
            self._pool.rotate()


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header (delta-seconds or HTTP-date).

    Returns ``None`` when the header is absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(tz=timezone.utc)).total_seconds(), 0.0)


class Throttle:
    """Enforce a minimum interval between consecutive calls.

    The first call never waits.  Same bookkeeping as a per-provider
    ``_throttle()`` helper, shared so every sequential workflow reads its
    interval from configuration.
    """

    def __init__(
        self,
        min_interval: float,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = max(min_interval, 0.0)
        self._sleep = sleep
        self._clock = clock
        self._last_call: float | None = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def wait(self) -> None:
        """Sleep until at least ``min_interval`` has passed since the last call."""
        if self._last_call is not None and self._min_interval > 0:
            elapsed = self._clock() - self._last_call
            if elapsed < self._min_interval:
                await self._sleep(self._min_interval - elapsed)
        self._last_call = self._clock()
