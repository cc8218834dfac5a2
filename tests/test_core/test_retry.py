"""
Tests for Retry Utilities

Tests for visionary/core/retry.py
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from visionary.core.retry import RetryConfig, async_retry, calculate_delay, retry_async_call


class Flaky(Exception):
    pass


class Fatal(Exception):
    pass


FAST = RetryConfig(max_retries=2, base_delay=0.0, jitter=False, retryable_exceptions=(Flaky,))


class TestCalculateDelay:

    def test_exponential_growth(self):
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)

        assert [calculate_delay(i, config) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        config = RetryConfig(base_delay=10.0, max_delay=15.0, jitter=False)

        assert calculate_delay(5, config) == 15.0

    def test_jitter_within_range(self):
        config = RetryConfig(base_delay=2.0, jitter=True, jitter_range=(0.5, 1.5))

        for _ in range(20):
            assert 1.0 <= calculate_delay(0, config) <= 3.0


class TestRetryAsyncCall:

    @pytest.mark.asyncio
    async def test_success_after_transient_failures(self):
        func = AsyncMock(side_effect=[Flaky("1"), Flaky("2"), "done"])
        on_retry = MagicMock()

        result = await retry_async_call(func, "a", key="b", config=FAST, on_retry=on_retry)

        assert result == "done"
        assert func.await_count == 3
        func.assert_awaited_with("a", key="b")
        assert [c.args[1] for c in on_retry.call_args_list] == [0, 1]

    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self):
        func = AsyncMock(side_effect=Flaky("always"))

        with pytest.raises(Flaky):
            await retry_async_call(func, config=FAST)
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_immediately(self):
        func = AsyncMock(side_effect=Fatal("no"))

        with pytest.raises(Fatal):
            await retry_async_call(func, config=FAST)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_decorator(self):
        calls = []

        @async_retry(max_retries=1, base_delay=0.0, retryable_exceptions=(Flaky,))
        async def fetch(value):
            calls.append(value)
            if len(calls) == 1:
                raise Flaky("first")
            return value * 2

        assert await fetch(21) == 42
        assert calls == [21, 21]
