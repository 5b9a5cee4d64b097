"""
Retry logic with exponential backoff for handling transient failures.

The retry loop is an explicit state machine so the attempt count and the
delay schedule can be inspected without doing any network I/O:

    IDLE -> REQUESTING -> BACKOFF -> REQUESTING -> ... -> SUCCESS | FAILED
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

import aiohttp

from cardsync.core.clock import SystemClock, system_clock

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    BACKOFF = "backoff"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, in seconds
        exponential_base: Multiplier applied per retry
        max_delay: Maximum delay cap
    """

    max_retries: int = 3
    base_delay: float = 2.0
    exponential_base: float = 2.0
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (zero-based) failed attempt: 2s, 4s, 8s..."""
        return min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)


class InvalidTransition(RuntimeError):
    pass


@dataclass
class RetryMachine:
    """Tracks one retried operation through its states."""

    policy: BackoffPolicy
    state: RetryState = RetryState.IDLE
    attempt: int = 0  # attempts started so far
    delays: list[float] = field(default_factory=list)
    last_error: Optional[BaseException] = None

    def begin(self) -> None:
        if self.state not in (RetryState.IDLE, RetryState.BACKOFF):
            raise InvalidTransition(f"cannot start a request from {self.state.value}")
        self.state = RetryState.REQUESTING
        self.attempt += 1

    def succeed(self) -> None:
        self._require(RetryState.REQUESTING)
        self.state = RetryState.SUCCESS

    def fail(self, exc: BaseException) -> Optional[float]:
        """
        Record a retryable failure.

        Returns the delay to wait before the next attempt, or None when the
        retries are exhausted (state becomes FAILED).
        """
        self._require(RetryState.REQUESTING)
        self.last_error = exc
        if self.attempt > self.policy.max_retries:
            self.state = RetryState.FAILED
            return None
        delay = self.policy.delay_for(self.attempt - 1)
        self.delays.append(delay)
        self.state = RetryState.BACKOFF
        return delay

    def abort(self, exc: BaseException) -> None:
        """Non-retryable failure: stop immediately."""
        self.last_error = exc
        self.state = RetryState.FAILED

    @property
    def finished(self) -> bool:
        return self.state in (RetryState.SUCCESS, RetryState.FAILED)

    def _require(self, expected: RetryState) -> None:
        if self.state is not expected:
            raise InvalidTransition(
                f"expected {expected.value}, machine is {self.state.value}"
            )


class RetryExhausted(Exception):
    """All attempts failed with retryable errors."""

    def __init__(self, machine: RetryMachine):
        self.machine = machine
        super().__init__(
            f"{machine.attempt} attempts failed, last error: {machine.last_error!r}"
        )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: BackoffPolicy = BackoffPolicy(),
    retry_on: tuple = (aiohttp.ClientError, asyncio.TimeoutError),
    clock: SystemClock = system_clock,
    name: str = "operation",
    machine: Optional[RetryMachine] = None,
) -> T:
    """
    Run an async operation, retrying errors in retry_on with backoff.

    Exceptions outside retry_on propagate immediately. Raises RetryExhausted
    once the policy's retries are spent.

    Usage:
        result = await retry_async(lambda: fetch(query), BackoffPolicy(max_retries=3))
    """
    machine = machine or RetryMachine(policy)
    policy = machine.policy

    while True:
        machine.begin()
        try:
            result = await operation()
        except retry_on as exc:
            delay = machine.fail(exc)
            if delay is None:
                logger.warning(
                    "%s: All %d attempts failed: %s", name, machine.attempt, exc
                )
                raise RetryExhausted(machine) from exc
            logger.debug(
                "%s: Attempt %d/%d failed (%s), retrying in %.1fs",
                name,
                machine.attempt,
                policy.max_retries + 1,
                type(exc).__name__,
                delay,
            )
            await clock.sleep(delay)
        except BaseException as exc:
            machine.abort(exc)
            raise
        else:
            machine.succeed()
            return result
