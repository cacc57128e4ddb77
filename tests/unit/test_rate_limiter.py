"""Unit tests for RetryPolicy, CredentialPool, RateLimiter and Throttle."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from rostersync.utils.errors import (
    ConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
    TransientNetworkError,
)
from rostersync.utils.rate_limiter import (
    CredentialPool,
    RateLimiter,
    RetryPolicy,
    Throttle,
    parse_retry_after,
)


class _Recorder:
    """Collects requested sleep durations instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _scripted(responses: list[httpx.Response | Exception], used: list[str]):
    """Return an ``fn(credential)`` that replays *responses* in order."""
    remaining = list(responses)

    async def fn(credential: str) -> httpx.Response:
        used.append(credential)
        item = remaining.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    return fn


# ======================================================================
# RetryPolicy / CredentialPool
# ======================================================================


class TestRetryPolicy:
    def test_backoff_doubles_and_caps(self) -> None:
        policy = RetryPolicy(max_retries=5, base_backoff_seconds=1.0, max_backoff_seconds=5.0)
        assert [policy.backoff(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


class TestCredentialPool:
    def test_empty_pool_is_a_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            CredentialPool([])

    def test_rotate_wraps_around(self) -> None:
        pool = CredentialPool(["k1", "k2"])
        assert pool.current == "k1"
        assert pool.rotate() == "k2"
        assert pool.rotate() == "k1"
        assert len(pool) == 2


# ======================================================================
# RateLimiter
# ======================================================================


class TestRateLimiter:
    @pytest.fixture()
    def sleeper(self) -> _Recorder:
        return _Recorder()

    def _limiter(self, sleeper: _Recorder, keys: list[str] | None = None, retries: int = 2) -> RateLimiter[str]:
        return RateLimiter(
            RetryPolicy(max_retries=retries, base_backoff_seconds=1.0),
            keys or ["k1", "k2"],
            provider_name="test",
            sleep=sleeper,
        )

    @pytest.mark.asyncio
    async def test_success_first_try(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        response = await limiter.call(_scripted([httpx.Response(200)], used))
        assert response.status_code == 200
        assert used == ["k1"]
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_429_honours_retry_after_on_same_key(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        responses = [httpx.Response(429, headers={"Retry-After": "7"}), httpx.Response(200)]
        response = await limiter.call(_scripted(responses, used))
        assert response.status_code == 200
        assert used == ["k1", "k1"]
        assert sleeper.calls == [7.0]

    @pytest.mark.asyncio
    async def test_429_without_header_backs_off_exponentially(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        responses = [httpx.Response(429), httpx.Response(429), httpx.Response(200)]
        await limiter.call(_scripted(responses, used))
        assert sleeper.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_persistent_429_raises_rate_limit_error(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper, retries=2)
        responses = [httpx.Response(429) for _ in range(3)]
        with pytest.raises(RateLimitError):
            await limiter.call(_scripted(responses, used))
        assert len(used) == 3
        assert len(sleeper.calls) == 2

    @pytest.mark.asyncio
    async def test_rejected_key_rotates_to_next(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        responses = [httpx.Response(401), httpx.Response(200)]
        await limiter.call(_scripted(responses, used))
        assert used == ["k1", "k2"]
        assert limiter.pool.current == "k2"
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_every_key_rejected(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        responses = [httpx.Response(403), httpx.Response(403)]
        with pytest.raises(ProviderUnavailableError):
            await limiter.call(_scripted(responses, used))
        assert used == ["k1", "k2"]

    @pytest.mark.asyncio
    async def test_transport_error_retries_then_succeeds(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        responses = [httpx.ConnectError("boom"), httpx.Response(200)]
        response = await limiter.call(_scripted(responses, used))
        assert response.status_code == 200
        assert used == ["k1", "k1"]
        assert sleeper.calls == [1.0]

    @pytest.mark.asyncio
    async def test_persistent_transport_error(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper, retries=1)
        responses = [httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow")]
        with pytest.raises(TransientNetworkError):
            await limiter.call(_scripted(responses, used))

    @pytest.mark.asyncio
    async def test_accepted_status_is_returned(self, sleeper: _Recorder) -> None:
        used: list[str] = []
        limiter = self._limiter(sleeper)
        response = await limiter.call(_scripted([httpx.Response(404)], used), accept_statuses=(404,))
        assert response.status_code == 404
        assert used == ["k1"]


# ======================================================================
# parse_retry_after
# ======================================================================


class TestParseRetryAfter:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, None), ("", None), ("3", 3.0), ("1.5", 1.5), ("-4", 0.0), ("soon", None)],
    )
    def test_values(self, value: str | None, expected: float | None) -> None:
        assert parse_retry_after(value) == expected

    def test_http_date_in_the_past(self) -> None:
        past = datetime.now(tz=timezone.utc) - timedelta(minutes=5)  # noqa: UP017
        assert parse_retry_after(format_datetime(past, usegmt=True)) == 0.0

    def test_http_date_in_the_future(self) -> None:
        future = datetime.now(tz=timezone.utc) + timedelta(seconds=120)  # noqa: UP017
        delay = parse_retry_after(format_datetime(future, usegmt=True))
        assert delay is not None
        assert 100 < delay <= 120


# ======================================================================
# Throttle
# ======================================================================


class TestThrottle:
    @pytest.mark.asyncio
    async def test_first_call_never_waits(self) -> None:
        sleeper = _Recorder()
        throttle = Throttle(5.0, sleep=sleeper, clock=lambda: 100.0)
        await throttle.wait()
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_waits_for_remaining_interval(self) -> None:
        sleeper = _Recorder()
        ticks = iter([100.0, 100.25, 101.0])
        throttle = Throttle(1.0, sleep=sleeper, clock=lambda: next(ticks))
        await throttle.wait()
        await throttle.wait()
        assert sleeper.calls == [pytest.approx(0.75)]

    @pytest.mark.asyncio
    async def test_zero_interval_is_a_noop(self) -> None:
        sleeper = _Recorder()
        throttle = Throttle(0, sleep=sleeper)
        await throttle.wait()
        await throttle.wait()
        assert sleeper.calls == []
        assert throttle.min_interval == 0.0
