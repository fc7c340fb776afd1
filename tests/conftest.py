"""Shared test fixtures."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from leetcode_tracker.resilience.breaker import CircuitBreaker
from leetcode_tracker.resilience.engine import RetryPolicyEngine
from leetcode_tracker.resilience.strategies import DEFAULT_STRATEGIES, RetryStrategy

SINGLE_ATTEMPT = RetryStrategy(name="single", max_attempts=1, base_delay=0.0, max_delay=5.0)


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUtcClock:
    """Manually advanced wall clock returning aware UTC datetimes."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass(slots=True)
class RecordingSleep:
    """Async sleep replacement that records delays and advances the fake clock."""

    clock: FakeMonotonic
    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)


@dataclass(slots=True)
class EngineHarness:
    engine: RetryPolicyEngine
    clock: FakeMonotonic
    sleep: RecordingSleep

    @property
    def breaker(self) -> CircuitBreaker:
        return self.engine.breaker


def build_engine(
    clock: FakeMonotonic | None = None,
    *,
    failure_threshold: int = 5,
    recovery_timeout: float = 600.0,
    base_timeout: float = 15.0,
    seed: int = 7,
) -> EngineHarness:
    clock = clock or FakeMonotonic()
    sleep = RecordingSleep(clock)
    engine = RetryPolicyEngine(
        breaker=CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            clock=clock,
        ),
        strategies={**DEFAULT_STRATEGIES, SINGLE_ATTEMPT.name: SINGLE_ATTEMPT},
        base_timeout=base_timeout,
        sleep=sleep,
        clock=clock,
        rng=random.Random(seed),
    )
    return EngineHarness(engine=engine, clock=clock, sleep=sleep)


@pytest.fixture()
def harness() -> EngineHarness:
    return build_engine()


@pytest.fixture()
def utc_clock() -> FakeUtcClock:
    return FakeUtcClock(datetime(2026, 10, 19, 16, 0, tzinfo=UTC))
