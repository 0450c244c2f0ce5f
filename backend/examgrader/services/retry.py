"""
Retry policy for calls to the grading model.

The policy only decides how many times to try and how long to wait; it knows
nothing about what the call does or how its output is checked.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TypeVar

from examgrader.config import GradingConfig, logger

T = TypeVar("T")


class RetriesExhausted(Exception):
    """Every attempt failed; `errors` holds one exception per attempt."""

    def __init__(self, errors: List[BaseException]):
        self.errors = errors
        last = errors[-1] if errors else None
        super().__init__(f"Failed after {len(errors)} attempt(s): {last}")

    @property
    def last_error(self) -> Optional[BaseException]:
        return self.errors[-1] if self.errors else None


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    """Delay before retry `attempt` (1-based): base_delay * attempt."""
    return lambda attempt: base_delay * attempt


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = linear_backoff(2.0)

    @classmethod
    def from_config(cls, config: GradingConfig) -> "RetryPolicy":
        return cls(max_attempts=config.max_attempts, backoff=linear_backoff(config.retry_delay_seconds))

    def delay_for(self, attempt: int) -> float:
        return max(0.0, self.backoff(attempt))


async def retry_async(call: Callable[[int], Awaitable[T]], policy: RetryPolicy,
                      sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> T:
    """
    Run `call(attempt)` until it returns, retrying on any exception.

    Attempts are sequential. Raises RetriesExhausted once the budget is spent.
    """
    errors: List[BaseException] = []
    for attempt in range(1, max(policy.max_attempts, 1) + 1):
        try:
            return await call(attempt)
        except Exception as e:
            errors.append(e)
            if attempt >= policy.max_attempts:
                break
            wait_time = policy.delay_for(attempt)
            logger.warning(f"Attempt {attempt}/{policy.max_attempts} failed: {e}. "
                           f"Waiting {wait_time}s before retry {attempt + 1}")
            await sleep(wait_time)
    raise RetriesExhausted(errors)
