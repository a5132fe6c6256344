import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay_ms: int = 2000,
    give_up_on: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run a read with a flat delay between attempts.

    Only for idempotent reads. After the last attempt the error is re-raised
    unchanged. Errors listed in ``give_up_on`` are re-raised at once.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except give_up_on:
            raise
        except Exception as exc:
            if attempt == attempts:
                raise
            logger.warning(
                "Attempt %d failed: %s. Retrying in %dms...", attempt, exc, delay_ms
            )
            await sleep(delay_ms / 1000)

    raise AssertionError("unreachable")


@dataclass
class RetryPolicy:
    attempts: int = 3
    delay_ms: int = 2000
    give_up_on: tuple[type[BaseException], ...] = ()
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await retry(
            fn,
            attempts=self.attempts,
            delay_ms=self.delay_ms,
            give_up_on=self.give_up_on,
            sleep=self.sleep,
        )
