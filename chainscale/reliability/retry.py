"""
Retry helpers with backoff and jitter for calls against deployed nodes.

Node APIs come up asynchronously and restart under chaos, so calls that
are safe to repeat go through a RetryExecutor. Two
backoff shapes are supported: exponential (with a jitter strategy) and
fixed-interval, which matches the "N attempts, D seconds apart" policy
used for blob publication and block feed start-up.
"""

import asyncio
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, TypeVar

import httpx

T = TypeVar("T")


class JitterStrategy(Enum):
    """
    Jitter strategies for retry delays.

    FULL: delay = random(0, min(cap, base * 2^attempt))
    EQUAL: temp = min(cap, base * 2^attempt); delay = temp/2 + random(0, temp/2)
    DECORRELATED: delay = random(base, previous_delay * 3)
    NONE: delay = min(cap, base * 2^attempt)
    """

    FULL = "full"
    EQUAL = "equal"
    DECORRELATED = "decorrelated"
    NONE = "none"


@dataclass(slots=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 30.0  # cap
    jitter: JitterStrategy = JitterStrategy.FULL
    exponential: bool = True

    retryable_exceptions: tuple[type[BaseException], ...] = field(
        default_factory=lambda: (
            ConnectionError,
            TimeoutError,
            OSError,
            httpx.TransportError,
        )
    )

    # Takes precedence over retryable_exceptions when set.
    is_retryable: Callable[[Exception], bool] | None = None

    @classmethod
    def fixed(
        cls,
        attempts: int,
        delay: float,
        is_retryable: Callable[[Exception], bool] | None = None,
    ) -> "RetryConfig":
        return cls(
            max_attempts=attempts,
            base_delay=delay,
            max_delay=delay,
            jitter=JitterStrategy.NONE,
            exponential=False,
            is_retryable=is_retryable,
        )


class RetryExecutor:
    """
    Executes an async operation, retrying on retryable failures.

    Example usage:
        executor = RetryExecutor(RetryConfig(max_attempts=3))

        info = await executor.execute(
            client.consensus_info,
            operation_name="consensus_info",
        )
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        on_retry: Callable[[str, int, Exception, float], Awaitable[None]] | None = None,
    ):
        self._config = config or RetryConfig()
        self._previous_delay: float = self._config.base_delay
        self._on_retry = on_retry

    @property
    def config(self) -> RetryConfig:
        return self._config

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the delay before retry number ``attempt`` (zero based).
        """
        base = self._config.base_delay
        cap = self._config.max_delay

        if self._config.exponential is False:
            return min(cap, base)

        jitter = self._config.jitter

        if jitter == JitterStrategy.FULL:
            temp = min(cap, base * (2**attempt))
            return random.uniform(0, temp)

        elif jitter == JitterStrategy.EQUAL:
            temp = min(cap, base * (2**attempt))
            return temp / 2 + random.uniform(0, temp / 2)

        elif jitter == JitterStrategy.DECORRELATED:
            delay = random.uniform(base, self._previous_delay * 3)
            delay = min(cap, delay)
            self._previous_delay = delay
            return delay

        return min(cap, base * (2**attempt))

    def reset(self) -> None:
        self._previous_delay = self._config.base_delay

    def _is_retryable(self, exc: Exception) -> bool:
        if self._config.is_retryable is not None:
            return self._config.is_retryable(exc)

        return isinstance(exc, self._config.retryable_exceptions)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        """
        Execute operation with retry.

        Raises the last exception once attempts are exhausted, or
        immediately for non-retryable exceptions.
        """
        self.reset()

        for attempt in range(self._config.max_attempts):
            try:
                return await operation()

            except Exception as exc:
                if not self._is_retryable(exc):
                    raise

                if attempt >= self._config.max_attempts - 1:
                    raise

                delay = self.calculate_delay(attempt)

                if self._on_retry is not None:
                    await self._on_retry(operation_name, attempt + 1, exc, delay)

                await asyncio.sleep(delay)

