"""Retry policy engine: named strategies, per-attempt timeouts and a circuit breaker."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from leetcode_tracker.errors import (
    AttemptTimeoutError,
    CircuitOpenError,
    ExhaustedRetriesError,
    NonRetryableClientError,
    RetryBudgetExceededError,
    TrackerError,
)
from leetcode_tracker.resilience.breaker import BreakerPermit, BreakerState, CircuitBreaker
from leetcode_tracker.resilience.failure_classifier import FailureClass, classify_failure
from leetcode_tracker.resilience.strategies import DEFAULT_STRATEGIES, RetryStrategy

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_TIMEOUT_SECONDS = 15.0
DEFAULT_JITTER_FRACTION = 0.3


@dataclass(frozen=True, slots=True)
class RetryMetrics:
    """Read-only snapshot of engine counters."""

    total_attempts: int
    total_successes: int
    total_failures: int
    breaker_trips: int
    cold_starts_detected: int
    breaker_state: BreakerState
    consecutive_failures: int

    @property
    def success_rate(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.total_successes / self.total_attempts


class RetryPolicyEngine:
    """Runs async operations under a named strategy and a shared circuit breaker."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        breaker: CircuitBreaker | None = None,
        strategies: Mapping[str, RetryStrategy] = DEFAULT_STRATEGIES,
        base_timeout: float = DEFAULT_BASE_TIMEOUT_SECONDS,
        jitter_fraction: float = DEFAULT_JITTER_FRACTION,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.breaker = breaker or CircuitBreaker(clock=clock)
        self.strategies = dict(strategies)
        self.base_timeout = base_timeout
        self.jitter_fraction = jitter_fraction
        self._sleep = sleep
        self._clock = clock
        self._random = rng or random.Random()  # noqa: S311
        self._total_attempts = 0
        self._total_successes = 0
        self._total_failures = 0
        self._cold_starts = 0

    @property
    def metrics(self) -> RetryMetrics:
        return RetryMetrics(
            total_attempts=self._total_attempts,
            total_successes=self._total_successes,
            total_failures=self._total_failures,
            breaker_trips=self.breaker.trips,
            cold_starts_detected=self._cold_starts,
            breaker_state=self.breaker.state,
            consecutive_failures=self.breaker.consecutive_failures,
        )

    def strategy(self, name: str) -> RetryStrategy:
        try:
            return self.strategies[name]
        except KeyError:
            raise KeyError(f"Unknown retry strategy: {name!r}") from None

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        strategy_name: str,
        *,
        name: str = "operation",
    ) -> T:
        """Run ``operation`` until it succeeds or the strategy gives up.

        Raises ``CircuitOpenError`` without calling ``operation`` while the breaker is open,
        the original (or a ``NonRetryableClientError``) for non-retryable failures,
        ``RetryBudgetExceededError`` when the total time budget is spent and
        ``ExhaustedRetriesError`` once every attempt failed.
        """

        strategy = self.strategy(strategy_name)
        permit = self.breaker.try_acquire()
        if permit is None:
            logger.warning("Circuit breaker is %s, rejecting %s", self.breaker.state.value, name)
            raise CircuitOpenError(f"Circuit breaker is open, {name} was not attempted")

        try:
            return await self._run_attempts(operation, strategy, permit, name=name)
        finally:
            self.breaker.release(permit)

    async def _run_attempts(
        self,
        operation: Callable[[], Awaitable[T]],
        strategy: RetryStrategy,
        permit: BreakerPermit,
        *,
        name: str,
    ) -> T:
        started = self._clock()
        last_error: BaseException | None = None
        attempt = 0
        logger.info(
            "Starting %s with strategy=%s (max %d attempts)",
            name,
            strategy.name,
            strategy.max_attempts,
        )

        while attempt < strategy.max_attempts:
            remaining = self._remaining_budget(strategy, started)
            if remaining is not None and remaining <= 0:
                logger.warning(
                    "%s exceeded total time budget of %.1fs after %d attempts",
                    name,
                    strategy.total_time_budget,
                    attempt,
                )
                self._record_failure()
                raise RetryBudgetExceededError(
                    f"{name} exceeded its {strategy.total_time_budget:.0f}s time budget",
                    attempts=attempt,
                    last_error=last_error,
                ) from last_error

            attempt += 1
            self._total_attempts += 1
            timeout = strategy.attempt_timeout(attempt, base_timeout=self.base_timeout)
            if remaining is not None:
                timeout = min(timeout, remaining)
            try:
                result = await self._attempt(operation, timeout=timeout, name=name)
            except Exception as error:  # noqa: BLE001
                last_error = error
                classification = classify_failure(error)
                logger.warning(
                    "%s attempt %d/%d failed (%s): %s",
                    name,
                    attempt,
                    strategy.max_attempts,
                    classification.matched_rule,
                    error,
                )
                if classification.failure_class == FailureClass.NON_RETRYABLE:
                    self._total_failures += 1
                    if isinstance(error, TrackerError):
                        raise
                    raise NonRetryableClientError(
                        f"{name} failed with non-retryable error: {error}",
                        status_code=classification.status_code,
                    ) from error
                if classification.failure_class == FailureClass.COLD_START:
                    self._cold_starts += 1
                    logger.info("Cold start detected for %s", name)
                if attempt < strategy.max_attempts:
                    delay = self._wait_time(strategy, attempt)
                    remaining = self._remaining_budget(strategy, started)
                    if remaining is not None:
                        if remaining <= 0:
                            continue
                        # never sleep past the time budget
                        delay = min(delay, remaining)
                    logger.info("Waiting %.2fs before retrying %s", delay, name)
                    await self._sleep(delay)
                continue

            self._total_successes += 1
            self.breaker.on_success(permit)
            logger.info("%s succeeded on attempt %d", name, attempt)
            return result

        logger.error("%s failed after %d attempts", name, attempt)
        self._record_failure()
        raise ExhaustedRetriesError(
            f"{name} failed after {attempt} attempts: {last_error}",
            attempts=attempt,
            last_error=last_error,
        ) from last_error

    async def _attempt(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout: float,
        name: str,
    ) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except TimeoutError as error:
            raise AttemptTimeoutError(
                f"{name} timed out after {timeout:.1f}s",
                timeout_seconds=timeout,
            ) from error

    def _remaining_budget(self, strategy: RetryStrategy, started: float) -> float | None:
        if strategy.total_time_budget is None:
            return None
        return strategy.total_time_budget - (self._clock() - started)

    def _wait_time(self, strategy: RetryStrategy, attempt: int) -> float:
        delay = strategy.backoff_delay(attempt)
        if strategy.jitter and self.jitter_fraction > 0:
            delay *= 1 + self._random.uniform(-self.jitter_fraction, self.jitter_fraction)
        return max(0.0, delay)

    def _record_failure(self) -> None:
        self._total_failures += 1
        self.breaker.on_failure()
