import asyncio
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_result, stop_after_delay, wait_fixed

from rosapilot.config import DEFAULT_POLL_INTERVAL
from rosapilot.exceptions import PollTimeoutError
from rosapilot.utils import setup_logger

Check = Callable[[], Awaitable[bool]]

_logger = setup_logger('Poller')


def _not_done(done: bool) -> bool:
    return not done


async def wait_for(
        check: Check,
        timeout: float,
        interval: float = DEFAULT_POLL_INTERVAL,
        description: str = 'condition',
) -> None:
    """
    Await ``check`` every ``interval`` seconds until it returns True.

    An exception raised by ``check`` is propagated immediately without further polls. When
    ``timeout`` seconds pass first, PollTimeoutError is raised. Cancelling the awaiting task
    interrupts the sleep between polls and surfaces asyncio.CancelledError.
    """
    if timeout <= 0:
        raise ValueError(f'timeout must be positive, got {timeout}')

    if interval <= 0:
        raise ValueError(f'interval must be positive, got {interval}')

    def log_attempt(retry_state: RetryCallState) -> None:
        _logger.info(f'Still waiting for {description}, attempt {retry_state.attempt_number}, '
                     f'{retry_state.seconds_since_start:.0f}s of {timeout:g}s elapsed')

    retrying = AsyncRetrying(
        retry=retry_if_result(_not_done),
        wait=wait_fixed(interval),
        stop=stop_after_delay(timeout),
        before_sleep=log_attempt,
    )

    deadline = asyncio.timeout(timeout)

    try:
        async with deadline:
            await retrying(check)
    except RetryError as e:
        raise PollTimeoutError(description, timeout) from e
    except TimeoutError as e:
        if not deadline.expired():
            raise

        raise PollTimeoutError(description, timeout) from e
