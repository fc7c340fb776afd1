"""Retry strategies, circuit breaker and the policy engine wrapping outbound calls."""

from leetcode_tracker.resilience.breaker import BreakerState, CircuitBreaker
from leetcode_tracker.resilience.engine import RetryMetrics, RetryPolicyEngine
from leetcode_tracker.resilience.strategies import DEFAULT_STRATEGIES, RetryStrategy

__all__ = [
    "DEFAULT_STRATEGIES",
    "BreakerState",
    "CircuitBreaker",
    "RetryMetrics",
    "RetryPolicyEngine",
    "RetryStrategy",
]
