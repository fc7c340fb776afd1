"""Named retry strategies chosen per call site."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class RetryStrategy:
    """Immutable retry configuration; delays and budgets are in seconds."""

    name: str
    max_attempts: int
    base_delay: float
    max_delay: float
    backoff_multiplier: float = 2.0
    timeout_multiplier: float = 1.0
    jitter: bool = True
    total_time_budget: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"Strategy {self.name!r}: max_attempts must be >= 1.")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError(f"Strategy {self.name!r}: delays must be >= 0.")
        if self.total_time_budget is not None and self.total_time_budget <= 0:
            raise ValueError(f"Strategy {self.name!r}: total_time_budget must be > 0.")

    def attempt_timeout(self, attempt: int, *, base_timeout: float) -> float:
        """Timeout for the given 1-based attempt."""

        return min(base_timeout * self.timeout_multiplier ** (attempt - 1), self.max_delay)

    def backoff_delay(self, attempt: int) -> float:
        """Un-jittered wait after the given 1-based failed attempt."""

        return min(self.base_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)


FAST = RetryStrategy(
    name="fast",
    max_attempts=2,
    base_delay=0.5,
    max_delay=2.0,
    backoff_multiplier=2.0,
    jitter=False,
)
NORMAL = RetryStrategy(
    name="normal",
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    backoff_multiplier=2.0,
)
COLD_START = RetryStrategy(
    name="cold_start",
    max_attempts=8,
    base_delay=15.0,
    max_delay=60.0,
    backoff_multiplier=1.3,
    timeout_multiplier=1.5,
    total_time_budget=600.0,
)
AGGRESSIVE = RetryStrategy(
    name="aggressive",
    max_attempts=12,
    base_delay=30.0,
    max_delay=120.0,
    backoff_multiplier=1.5,
    timeout_multiplier=1.5,
    total_time_budget=720.0,
)

DEFAULT_STRATEGIES: Mapping[str, RetryStrategy] = MappingProxyType(
    {strategy.name: strategy for strategy in (FAST, NORMAL, COLD_START, AGGRESSIVE)},
)
