import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 250

Predicate = Callable[[], Union[Any, Awaitable[Any]]]


def polling_policy(timeout_ms: int, interval_ms: int = DEFAULT_POLL_INTERVAL_MS) -> AsyncRetrying:
    # Re-check a falsy condition every interval until the deadline
    return AsyncRetrying(
        stop=stop_after_delay(timeout_ms / 1000),
        wait=wait_fixed(interval_ms / 1000),
        retry=retry_if_result(lambda satisfied: not satisfied),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
    )


async def poll_until(
    predicate: Predicate,
    timeout_ms: int,
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    description: str = "condition"
) -> bool:
    # Bounded wait for an externally observed condition
    # Timing out returns False; exceptions raised by the predicate propagate
    async def check() -> bool:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    try:
        satisfied = await polling_policy(timeout_ms, interval_ms)(check)
    except RetryError:
        logger.info(f"Timed out after {timeout_ms}ms waiting for {description}")
        return False

    logger.debug(f"Observed {description}")
    return satisfied
