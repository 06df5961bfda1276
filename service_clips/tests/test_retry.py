"""
Tests for the bounded retry decorator.
"""

from unittest.mock import AsyncMock, patch

import pytest

from shared.retry import RetryConfig, RetryError, retry_on_exception


class TestRetryOnException:
    """Test cases for retry_on_exception."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        """Transient failures are retried with the configured constant delay."""
        func = AsyncMock(side_effect=[ConnectionError("down"), ConnectionError("down"), "ok"])
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=3, delay=0.25))(func)

        with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            assert await wrapped() == "ok"

        assert func.await_count == 3
        assert [call.args[0] for call in mock_sleep.await_args_list] == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_retry_error(self):
        """The last exception and attempt count are carried on RetryError."""
        error = ConnectionError("refused")
        func = AsyncMock(side_effect=error)
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=2, delay=0))(func)

        with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RetryError) as exc_info:
                await wrapped()

        assert exc_info.value.attempts == 2
        assert exc_info.value.last_exception is error
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_unlisted_exception_propagates(self):
        """Only the listed exception types are retried."""
        func = AsyncMock(side_effect=KeyError("boom"))
        wrapped = retry_on_exception((ConnectionError,), RetryConfig(max_attempts=3, delay=0))(func)

        with pytest.raises(KeyError):
            await wrapped()

        assert func.await_count == 1

    def test_config_bounds(self):
        """At least one attempt and never a negative delay."""
        config = RetryConfig(max_attempts=0, delay=-1)

        assert config.max_attempts == 1
        assert config.delay == 0.0
