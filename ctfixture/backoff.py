"""Bounded retries with exponential delay.

A Backoff value is reusable: every call to retry() starts from a fresh
attempt counter and the initial wait.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Tuple, Type

from .errors import BackoffTimeoutError, ConfigurationError, NotReadyError

DEFAULT_ATTEMPTS = 300  # 300 attempts * 100ms = 30s
DEFAULT_WAIT = 0.1


@dataclass
class Backoff:
    """Retry policy: up to maximum_attempts, waiting between failures.

    Durations are in seconds. The wait doubles after each failure and is
    capped at maximum_wait.
    """

    maximum_attempts: int
    initial_wait: float = DEFAULT_WAIT
    maximum_wait: float = DEFAULT_WAIT
    retry_on: Tuple[Type[BaseException], ...] = (NotReadyError,)
    attempts: int = field(default=0, init=False)
    wait: float = field(init=False)

    def __post_init__(self) -> None:
        if self.maximum_attempts < 0:
            raise ConfigurationError(f"maximum_attempts must not be negative: {self.maximum_attempts}")
        if self.initial_wait < 0:
            raise ConfigurationError(f"initial_wait must not be negative: {self.initial_wait}")
        if self.initial_wait > self.maximum_wait:
            raise ConfigurationError(
                f"initial_wait ({self.initial_wait}) exceeds maximum_wait ({self.maximum_wait})"
            )
        self.wait = self.initial_wait

    @classmethod
    def default(cls) -> "Backoff":
        return cls(DEFAULT_ATTEMPTS, DEFAULT_WAIT, DEFAULT_WAIT)

    @classmethod
    def constant(cls, milliseconds: int) -> "Backoff":
        """Poll every 100ms for a total of roughly `milliseconds`."""
        return cls(int(milliseconds) // 100, DEFAULT_WAIT, DEFAULT_WAIT)

    def reset(self) -> None:
        self.attempts = 0
        self.wait = self.initial_wait

    async def retry(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Await operation() until it succeeds or the attempts run out.

        Only exceptions listed in retry_on are retried, anything else
        propagates unchanged.

        Raises:
            BackoffTimeoutError: If the last allowed attempt still failed
        """
        self.reset()
        while True:
            try:
                return await operation()
            except self.retry_on as e:
                error = e

            logging.debug(f"Attempt {self.attempts + 1} failed, retrying in {self.wait}s: {error}")
            await asyncio.sleep(self.wait)
            self.wait = min(self.maximum_wait, self.wait * 2)
            self.attempts += 1
            if self.attempts < self.maximum_attempts:
                continue
            raise BackoffTimeoutError(f"Backoff timeout: {error}") from error
