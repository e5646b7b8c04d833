"""
Retry and backoff for network operations.
"""

from .retry import (
    RetryAttempt,
    RetryPolicy,
    ExponentialBackoff,
    FixedBackoff,
    create_network_retry_policy,
)

__all__ = [
    "RetryAttempt",
    "RetryPolicy",
    "ExponentialBackoff",
    "FixedBackoff",
    "create_network_retry_policy",
]
