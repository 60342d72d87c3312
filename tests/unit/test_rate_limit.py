"""Sliding-window rate limiter behavior (fake clock, no real sleeping)."""

from __future__ import annotations

import asyncio

import pytest

from colloquy.config import RateLimitConfig
from colloquy.rate_limit import WINDOW_S, RateLimiter
from tests.helpers import FakeClock

pytestmark = pytest.mark.unit


def _limiter(clock: FakeClock, **kwargs) -> RateLimiter:
    return RateLimiter(RateLimitConfig(**kwargs), clock=clock, sleep=clock.sleep)


@pytest.mark.asyncio
async def test_calls_within_budget_do_not_wait(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=3)

    waits = [await limiter.admit() for _ in range(3)]

    assert waits == [0.0, 0.0, 0.0]
    assert fake_clock.sleeps == []
    assert limiter.window_size == 3


@pytest.mark.asyncio
async def test_call_over_budget_starts_a_full_window_after_the_oldest(
    fake_clock: FakeClock,
) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=2)
    starts: list[float] = []

    async def op() -> None:
        starts.append(fake_clock())

    t0 = fake_clock()
    for _ in range(3):
        await limiter.execute(op)

    assert starts[:2] == [t0, t0]
    assert starts[2] >= t0 + WINDOW_S
    assert fake_clock.sleeps == [pytest.approx(WINDOW_S)]


@pytest.mark.asyncio
async def test_window_slides_as_time_passes(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=2)

    await limiter.admit()
    fake_clock.advance(30)
    await limiter.admit()
    fake_clock.advance(31)

    assert await limiter.admit() == 0.0
    assert limiter.usage() == (2, 0)


@pytest.mark.asyncio
async def test_no_sixty_second_span_exceeds_budget(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=3)
    starts: list[float] = []

    for _ in range(10):
        await limiter.admit()
        starts.append(fake_clock())
        fake_clock.advance(5)

    for start in starts:
        in_window = [s for s in starts if start <= s < start + WINDOW_S]
        assert len(in_window) <= 3


@pytest.mark.asyncio
async def test_concurrent_admissions_are_serialized(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=2)

    waits = await asyncio.gather(*(limiter.admit() for _ in range(5)))

    # Two starts per window: the third caller waits a full window, after
    # which the fourth fits beside it and the fifth waits again.
    assert waits == [0.0, 0.0, pytest.approx(WINDOW_S), 0.0, pytest.approx(WINDOW_S)]
    assert len(fake_clock.sleeps) == 2
    assert limiter.window_size == 1


@pytest.mark.asyncio
async def test_backoff_disabled_bypasses_the_limiter(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=1, enable_backoff=False)
    calls = 0

    async def op() -> int:
        nonlocal calls
        calls += 1
        return calls

    results = [await limiter.execute(op) for _ in range(5)]

    assert results == [1, 2, 3, 4, 5]
    assert fake_clock.sleeps == []
    assert limiter.window_size == 0


@pytest.mark.asyncio
async def test_token_budget_delays_admission(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=100, tokens_per_minute=1_000)

    await limiter.admit(tokens=600)
    fake_clock.advance(10)
    waited = await limiter.admit(tokens=600)

    assert waited == pytest.approx(WINDOW_S - 10)
    assert limiter.usage() == (1, 600)


@pytest.mark.asyncio
async def test_oversized_call_waits_for_an_empty_window(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=100, tokens_per_minute=100)

    await limiter.admit(tokens=10)
    waited = await limiter.admit(tokens=500)

    assert waited == pytest.approx(WINDOW_S)
    assert limiter.usage() == (1, 500)


@pytest.mark.asyncio
async def test_tokens_are_ignored_without_a_token_budget(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=10)

    assert await limiter.admit(tokens=10**9) == 0.0
    assert await limiter.admit(tokens=10**9) == 0.0


@pytest.mark.asyncio
async def test_operation_errors_propagate_and_still_count(fake_clock: FakeClock) -> None:
    limiter = _limiter(fake_clock, requests_per_minute=5)

    async def boom() -> None:
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        await limiter.execute(boom)

    assert limiter.window_size == 1
