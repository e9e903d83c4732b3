import asyncio

import pytest

from rosapilot.core.poller import wait_for
from rosapilot.exceptions import PollTimeoutError


class TestWaitFor:
    def test_returns_once_check_is_true(self):
        attempts = []

        async def check():
            attempts.append(1)
            return len(attempts) >= 3

        asyncio.run(wait_for(check, timeout=5, interval=0.01))

        assert len(attempts) == 3

    def test_never_true_times_out(self):
        async def check():
            return False

        with pytest.raises(PollTimeoutError, match="timed out after 0.1s waiting for cluster demo"):
            asyncio.run(wait_for(check, timeout=0.1, interval=0.02, description="cluster demo"))

    def test_check_error_propagates_without_retry(self):
        attempts = []

        async def check():
            attempts.append(1)
            raise RuntimeError("describe failed")

        with pytest.raises(RuntimeError, match="describe failed"):
            asyncio.run(wait_for(check, timeout=5, interval=0.01))

        assert len(attempts) == 1

    def test_slow_check_is_bounded_by_timeout(self):
        async def check():
            await asyncio.sleep(10)
            return True

        with pytest.raises(PollTimeoutError):
            asyncio.run(wait_for(check, timeout=0.05, interval=0.01))

    def test_cancellation_interrupts_the_wait(self):
        async def check():
            return False

        async def scenario():
            task = asyncio.create_task(wait_for(check, timeout=60, interval=30))
            await asyncio.sleep(0.05)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scenario())

    @pytest.mark.parametrize("timeout, interval", [(0, 1), (-1, 1), (1, 0)])
    def test_rejects_non_positive_arguments(self, timeout, interval):
        async def check():
            return True

        with pytest.raises(ValueError):
            asyncio.run(wait_for(check, timeout=timeout, interval=interval))
