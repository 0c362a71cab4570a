"""
Unit tests for with_retry and rate-limit classification.
"""

import time
from unittest.mock import AsyncMock, patch

import pytest

from salesdash.services.errors import (
    QueueClearedError,
    RateLimitError,
    ServiceError,
    UpstreamError,
)
from salesdash.services.retry import backoff_delay, is_rate_limit_error, with_retry


class StatusError(Exception):
    def __init__(self, message: str, **attrs):
        super().__init__(message)
        for key, value in attrs.items():
            setattr(self, key, value)


@pytest.mark.unit
class TestIsRateLimitError:
    def test_none_is_not_rate_limit(self):
        assert is_rate_limit_error(None) is False

    def test_structured_errors_use_retryable_tag(self):
        assert is_rate_limit_error(RateLimitError("sheets")) is True
        assert is_rate_limit_error(UpstreamError("boom", status_code=500)) is False
        assert is_rate_limit_error(QueueClearedError("write")) is False

    def test_structured_tag_wins_over_message(self):
        # Message mentions a quota but the error was tagged non-retryable
        assert is_rate_limit_error(ServiceError("Quota exceeded for project")) is False

    @pytest.mark.parametrize("attr", ["status", "code", "status_code"])
    def test_http_429_attribute(self, attr):
        assert is_rate_limit_error(StatusError("nope", **{attr: 429})) is True

    def test_other_status_is_not_retryable(self):
        assert is_rate_limit_error(StatusError("forbidden", status=403)) is False

    @pytest.mark.parametrize(
        "message",
        [
            "Quota exceeded for quota metric 'Read requests'",
            "RATE LIMIT hit",
            "Too Many Requests",
            "8 RESOURCE_EXHAUSTED: Resource exhausted",
        ],
    )
    def test_quota_messages(self, message):
        assert is_rate_limit_error(Exception(message)) is True

    def test_plain_failure_is_not_retryable(self):
        assert is_rate_limit_error(PermissionError("permission denied")) is False


@pytest.mark.unit
class TestBackoffDelay:
    def test_doubles_per_attempt(self):
        assert [backoff_delay(i, 1.0, 10.0) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        assert backoff_delay(4, 1.0, 10.0) == 10.0
        assert backoff_delay(10, 0.5, 3.0) == 3.0


@pytest.mark.unit
class TestWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        operation = AsyncMock(return_value="ok")

        assert await with_retry(operation) == "ok"
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_sequencing(self):
        attempts: list[float] = []

        async def flaky():
            attempts.append(time.monotonic())
            if len(attempts) < 3:
                raise StatusError("Too many requests", status=429)
            return "done"

        result = await with_retry(flaky, max_retries=3, base_delay=0.1, name="flaky")

        assert result == "done"
        assert len(attempts) == 3
        assert attempts[1] - attempts[0] >= 0.095
        assert attempts[2] - attempts[1] >= 0.19

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self):
        operation = AsyncMock(side_effect=PermissionError("permission denied"))
        sleep = AsyncMock()

        with patch("salesdash.services.retry.asyncio.sleep", sleep):
            with pytest.raises(PermissionError):
                await with_retry(operation, max_retries=3)

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        errors = [RateLimitError("sheets") for _ in range(3)]
        operation = AsyncMock(side_effect=errors)
        sleep = AsyncMock()

        with patch("salesdash.services.retry.asyncio.sleep", sleep):
            with pytest.raises(RateLimitError) as exc_info:
                await with_retry(operation, max_retries=2, base_delay=1.0)

        assert exc_info.value is errors[-1]
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_delays_respect_max_delay(self):
        operation = AsyncMock(side_effect=[RateLimitError("sheets")] * 4 + ["ok"])
        sleep = AsyncMock()

        with patch("salesdash.services.retry.asyncio.sleep", sleep):
            assert await with_retry(operation, max_retries=4, base_delay=2.0, max_delay=5.0) == "ok"

        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self):
        operation = AsyncMock(side_effect=RateLimitError("sheets"))

        with pytest.raises(RateLimitError):
            await with_retry(operation, max_retries=0)

        assert operation.await_count == 1
