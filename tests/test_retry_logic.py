"""
Test Retry Strategy for Cluster Calls

Verifies that the retry wrapper works correctly:
- Transient failures that succeed on retry
- Exhausted attempts re-raising the last error
- Backoff delays and jitter bounds
- Exceptions without a message keeping their type
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from kubedeploy.services.orchestration.kubernetes.errors import (
    PermanentClusterError,
    TransientClusterError,
)
from kubedeploy.services.retry_config import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    create_retry_decorator,
    log_retry,
    wait_policy,
)


class TestRetryPolicy:
    """Test backoff computation."""

    def test_defaults(self):
        assert DEFAULT_RETRY_POLICY == RetryPolicy(
            max_attempts=5, backoff_factor=2.0, min_delay=0.1, max_delay=3.0, jitter=True
        )

    def test_exponential_delays_without_jitter(self):
        policy = RetryPolicy(jitter=False)

        assert policy.delay(1) == 0.0
        assert policy.delay(2) == pytest.approx(0.1)
        assert policy.delay(3) == pytest.approx(0.2)
        assert policy.delay(4) == pytest.approx(0.4)
        assert policy.delay(5) == pytest.approx(0.8)

    def test_delay_capped_at_max(self):
        policy = RetryPolicy(jitter=False)
        assert policy.delay(12) == pytest.approx(3.0)

    def test_jitter_bounds(self):
        policy = RetryPolicy(jitter=True)
        for _ in range(50):
            assert 0.2 <= policy.delay(3) <= 0.4

    def test_from_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == settings.k8s_retry_max_attempts
        assert policy.max_delay == settings.k8s_retry_max_delay


class TestLogRetry:
    """Test the retry wrapper behavior."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, fast_retry_policy):
        """Test that successful operations don't retry."""
        call_count = 0

        async def successful_operation():
            nonlocal call_count
            call_count += 1
            return {"kind": "Deployment"}

        result = await log_retry(successful_operation, "create deployment ns/app", fast_retry_policy)

        assert result == {"kind": "Deployment"}
        assert call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [1, 2, 3, 4])
    async def test_success_after_failures(self, fast_retry_policy, failures):
        """Test that an operation failing n < 5 times succeeds on attempt n+1."""
        call_count = 0

        async def flaky_operation():
            nonlocal call_count
            call_count += 1
            if call_count <= failures:
                raise TransientClusterError(f"attempt {call_count} failed")
            return "ok"

        result = await log_retry(flaky_operation, "patch service ns/app", fast_retry_policy)

        assert result == "ok"
        assert call_count == failures + 1

    @pytest.mark.asyncio
    async def test_always_failing_gives_up_after_five_attempts(self, fast_retry_policy):
        """Test that the last error is re-raised with its message after 5 attempts."""
        operation = AsyncMock(side_effect=PermanentClusterError("admission webhook denied the request", status=400))

        with pytest.raises(PermanentClusterError, match="admission webhook denied the request"):
            await log_retry(operation, "create ingress ns/app", fast_retry_policy)

        assert operation.await_count == 5

    @pytest.mark.asyncio
    async def test_all_errors_are_retried(self, fast_retry_policy):
        """Test that the wrapper does not filter which errors are retried."""
        operation = AsyncMock(side_effect=[ValueError("bad"), KeyError("missing"), "done"])

        assert await log_retry(operation, "op", fast_retry_policy) == "done"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_exception_without_message_keeps_its_type(self, fast_retry_policy):
        """Test that errors without a message are re-raised as the same object."""

        class BareError(Exception):
            pass

        errors = [BareError() for _ in range(5)]
        for e in errors:
            e.code = 7
        operation = AsyncMock(side_effect=errors)

        with pytest.raises(BareError) as exc_info:
            await log_retry(operation, "delete secret ns/s", fast_retry_policy)

        assert exc_info.value is errors[-1]
        assert exc_info.value.code == 7

    @pytest.mark.asyncio
    async def test_timeout_error_propagates_unchanged(self, fast_retry_policy):
        """Test that built-in errors with empty messages still match their own except clause."""
        operation = AsyncMock(side_effect=[asyncio.TimeoutError() for _ in range(5)])

        with pytest.raises(asyncio.TimeoutError):
            await log_retry(operation, "read deployment ns/app", fast_retry_policy)

        assert operation.await_count == 5

    def test_wait_strategy_uses_policy_delays(self):
        """Test that the wait after attempt n is the delay before attempt n+1."""
        wait = wait_policy(RetryPolicy(jitter=False))

        delays = [wait(Mock(attempt_number=n)) for n in (1, 2, 3)]

        assert delays == [pytest.approx(0.1), pytest.approx(0.2), pytest.approx(0.4)]

    @pytest.mark.asyncio
    async def test_failed_attempts_are_logged(self, fast_retry_policy, caplog):
        operation = AsyncMock(side_effect=[TransientClusterError("boom"), "ok"])

        with caplog.at_level("DEBUG", logger="kubedeploy.services.retry_config"):
            await log_retry(operation, "create service ns/app", fast_retry_policy)

        assert "Error in create service ns/app attempt 1: boom" in caplog.text


class TestRetryDecorator:
    """Test the decorator form."""

    @pytest.mark.asyncio
    async def test_decorated_function_retries(self, fast_retry_policy):
        call_count = 0

        @create_retry_decorator(fast_retry_policy)
        async def read_config_map(name):
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TransientClusterError("timeout")
            return name

        assert await read_config_map("settings") == "settings"
        assert call_count == 3
        assert read_config_map.__name__ == "read_config_map"
