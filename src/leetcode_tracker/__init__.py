"""Daily LeetCode practice tracker with retrying API calls and checkpointed state."""

__version__ = "0.1.0"
