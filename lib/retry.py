import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from lib.error_handler import RateLimitedError, RetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000

class RetryController:
    """
    Bounded exponential backoff for rate-limited upstream calls.

    Only `RateLimitedError` is retried. Every other exception propagates on the
    first failure. When all attempts are rate limited a `RetriesExhaustedError`
    is raised instead of the last rate-limit error.
    """

    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep

    def compute_delay_ms(self, attempt: int, retry_after_ms: Optional[float] = None) -> float:
        """Delay after the zero-based `attempt` failed."""
        backoff = self.base_delay_ms * (2 ** attempt)
        if retry_after_ms is None:
            return backoff
        return min(retry_after_ms, backoff)

    def backoff_schedule(self) -> List[float]:
        return [self.compute_delay_ms(attempt) for attempt in range(self.max_attempts - 1)]

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except RateLimitedError as e:
                if attempt + 1 >= self.max_attempts:
                    logger.error(f"Rate limited on final attempt {attempt + 1}/{self.max_attempts}")
                    raise RetriesExhaustedError(self.max_attempts, e) from e

                delay_ms = self.compute_delay_ms(attempt, e.retry_after_ms)
                logger.warning(
                    f"Rate limited on attempt {attempt + 1}/{self.max_attempts}, "
                    f"retrying in {delay_ms:.0f}ms"
                )
                await self._sleep(delay_ms / 1000)

async def with_retry(operation: Callable[[], Awaitable[T]], **kwargs) -> T:
    return await RetryController(**kwargs).run(operation)
