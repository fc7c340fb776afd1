"""Circuit breaker guarding calls to one dependency."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class BreakerState(str, Enum):
    """Circuit breaker lifecycle states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True, slots=True)
class BreakerPermit:
    """Admission handed out by :meth:`CircuitBreaker.try_acquire`.

    ``probe`` is set only for the single execution admitted while HALF_OPEN; ``epoch``
    identifies the HALF_OPEN period it was admitted in.
    """

    probe: bool = False
    epoch: int = 0


class CircuitBreaker:
    """Failure gate mutated only by :class:`RetryPolicyEngine` outcomes.

    While HALF_OPEN a single probe execution is admitted at a time; other callers are
    rejected until the probe reports back. Only the probe's success counts toward closing.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 600.0,
        half_open_success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1.")
        if half_open_success_threshold < 1:
            raise ValueError("half_open_success_threshold must be >= 1.")
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_success_threshold = half_open_success_threshold
        self._clock = clock
        self.state = BreakerState.CLOSED
        self.consecutive_failures = 0
        self.half_open_successes = 0
        self.opened_at: float | None = None
        self.trips = 0
        self._probe_in_flight = False
        self._epoch = 0

    def try_acquire(self) -> BreakerPermit | None:
        """Admit one execution, moving OPEN to HALF_OPEN once the recovery timeout passed.

        Returns ``None`` when the execution is rejected.
        """

        if self.state == BreakerState.OPEN:
            opened_at = self.opened_at if self.opened_at is not None else self._clock()
            if self._clock() - opened_at < self.recovery_timeout:
                return None
            logger.info("Circuit breaker transitioning to HALF_OPEN")
            self.state = BreakerState.HALF_OPEN
            self.half_open_successes = 0
            self._probe_in_flight = False
            self._epoch += 1

        if self.state == BreakerState.HALF_OPEN:
            if self._probe_in_flight:
                return None
            self._probe_in_flight = True
            return BreakerPermit(probe=True, epoch=self._epoch)
        return BreakerPermit(epoch=self._epoch)

    def release(self, permit: BreakerPermit) -> None:
        """End the execution admitted with ``permit``; frees the probe slot only for its holder."""

        if self._holds_probe(permit):
            self._probe_in_flight = False

    def on_success(self, permit: BreakerPermit | None = None) -> None:
        if self.state == BreakerState.HALF_OPEN:
            if permit is None or not self._holds_probe(permit):
                return
            self.half_open_successes += 1
            if self.half_open_successes >= self.half_open_success_threshold:
                logger.info("Circuit breaker transitioning to CLOSED")
                self._close()
        elif self.state == BreakerState.CLOSED:
            self.consecutive_failures = 0

    def on_failure(self) -> None:
        self.consecutive_failures += 1
        if self.state == BreakerState.HALF_OPEN:
            logger.warning("Circuit breaker re-opened after failed HALF_OPEN execution")
            self._open()
        elif (
            self.state == BreakerState.CLOSED
            and self.consecutive_failures >= self.failure_threshold
        ):
            logger.warning(
                "Circuit breaker tripped after %d consecutive failures",
                self.consecutive_failures,
            )
            self._open()

    def reset(self) -> None:
        """Force the breaker closed."""

        self._close()
        self.opened_at = None

    def _holds_probe(self, permit: BreakerPermit) -> bool:
        return (
            permit.probe
            and permit.epoch == self._epoch
            and self.state == BreakerState.HALF_OPEN
        )

    def _open(self) -> None:
        self.state = BreakerState.OPEN
        self.opened_at = self._clock()
        self.half_open_successes = 0
        self._probe_in_flight = False
        self.trips += 1

    def _close(self) -> None:
        self.state = BreakerState.CLOSED
        self.consecutive_failures = 0
        self.half_open_successes = 0
        self._probe_in_flight = False
