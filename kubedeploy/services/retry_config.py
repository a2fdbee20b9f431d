"""
Retry Strategy for Cluster API Calls

Wraps create, patch and delete calls against the cluster with tenacity so
transient failures (dropped connections, throttling, 5xx) do not fail a
whole reconciliation.

Backoff before attempt n (n >= 2) is

    min(max_delay, min_delay * backoff_factor ** (n - 2))

multiplied by a random factor in [1, 2) when jitter is enabled, so
concurrent reconciliations hitting the same failure spread out.

The wrapper does not decide which errors are worth retrying: every
exception raised by the operation is retried until attempts run out and
the last one is re-raised.
"""

import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt limit and backoff parameters for log_retry()."""
    max_attempts: int = 5
    backoff_factor: float = 2.0
    min_delay: float = 0.1  # seconds
    max_delay: float = 3.0  # seconds
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.k8s_retry_max_attempts,
            backoff_factor=settings.k8s_retry_backoff_factor,
            min_delay=settings.k8s_retry_min_delay,
            max_delay=settings.k8s_retry_max_delay,
            jitter=settings.k8s_retry_jitter,
        )

    def delay(self, attempt: int) -> float:
        """
        Seconds to wait before ``attempt`` (1-based).

        Example:
            >>> RetryPolicy(jitter=False).delay(4)
            0.4
        """
        if attempt < 2:
            return 0.0
        base = min(self.max_delay, self.min_delay * self.backoff_factor ** (attempt - 2))
        if self.jitter:
            base *= random.uniform(1, 2)
        return base


DEFAULT_RETRY_POLICY = RetryPolicy()


class wait_policy(wait_base):
    """tenacity wait strategy computing delays from a RetryPolicy."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        # Called after a failed attempt, so the next one is attempt_number + 1
        return self.policy.delay(retry_state.attempt_number + 1)


async def log_retry(
    operation: Callable[[], Awaitable[T]],
    description: str,
    policy: Optional[RetryPolicy] = None
) -> T:
    """
    Run an async operation with exponential backoff, logging every failure.

    Args:
        operation: Zero-argument coroutine function to (re)invoke
        description: What the operation does, e.g. "create service ns/app"
        policy: Attempt limit and backoff, defaults to DEFAULT_RETRY_POLICY

    Returns:
        The operation's result from the first successful attempt

    Raises:
        The last attempt's exception once all attempts failed

    Example:
        >>> await log_retry(lambda: adapter.create(doc, "ns"), "create service ns/app")
    """
    from .orchestration.kubernetes.errors import error_message

    policy = policy or DEFAULT_RETRY_POLICY

    def _after(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        logger.debug(
            f"[K8S:RETRY] Error in {description} attempt {retry_state.attempt_number}: "
            f"{error_message(exc)}"
        )

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_policy(policy),
        after=_after,
        reraise=True
    ):
        with attempt:
            logger.debug(f"[K8S:RETRY] Retry {description} attempt {attempt.retry_state.attempt_number}")
            return await operation()


def create_retry_decorator(policy: Optional[RetryPolicy] = None) -> Callable:
    """
    Create a retry decorator for async functions using a RetryPolicy.

    Example:
        >>> @create_retry_decorator(RetryPolicy(max_attempts=3))
        ... async def read_config_map():
        ...     ...
    """
    policy = policy or DEFAULT_RETRY_POLICY

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        async def wrapper(*args, **kwargs) -> T:
            return await log_retry(lambda: func(*args, **kwargs), func.__name__, policy)

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator
