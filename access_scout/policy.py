# access_scout/policy.py
"""
Attempt policy shared by the static fetch path and browser navigation.

Both paths are reduced to an ordered *plan* of :class:`Attempt` objects:
a retry policy expands into N identical attempts separated by backoff, a
navigation strategy into one attempt per ``(wait_until, timeout)`` step.
:func:`run_attempts` executes a plan strictly in order, one attempt at a
time, and the first success wins.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Type, TypeVar

from access_scout.config import NavigationStep, RetryPolicy
from access_scout.logger import get_logger

__all__ = ("Attempt", "AttemptsExhausted", "retry_plan", "navigation_plan", "run_attempts")

T = TypeVar("T")

log = get_logger("policy")


@dataclass(frozen=True, slots=True)
class Attempt:
    number: int
    timeout: float
    delay: float = 0.0
    wait_until: Optional[str] = None

    def describe(self) -> str:
        if self.wait_until:
            return f"{self.wait_until}/{self.timeout:g}s"
        return f"attempt {self.number} ({self.timeout:g}s)"


class AttemptsExhausted(Exception):
    """Every attempt of a plan failed; carries the last failure."""

    def __init__(self, last_error: BaseException, attempt: Attempt, timed_out: bool) -> None:
        super().__init__(str(last_error) or type(last_error).__name__)
        self.last_error = last_error
        self.attempt = attempt
        self.timed_out = timed_out


def retry_plan(policy: RetryPolicy) -> List[Attempt]:
    return [
        Attempt(number=n, timeout=policy.per_attempt_timeout, delay=policy.delay_before(n))
        for n in range(1, policy.attempts + 1)
    ]


def navigation_plan(steps: Sequence[NavigationStep]) -> List[Attempt]:
    return [
        Attempt(number=n, timeout=step.timeout, wait_until=step.wait_until)
        for n, step in enumerate(steps, start=1)
    ]


async def run_attempts(
    plan: Sequence[Attempt],
    operation: Callable[[Attempt], Awaitable[T]],
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> Tuple[T, Attempt]:
    """Run *operation* for each attempt in *plan* until one succeeds.

    Each attempt is bounded by its own ``timeout``. Exceptions outside
    *retry_on* propagate immediately; a timeout always counts as retryable.
    Returns the operation's value and the attempt that produced it.
    """
    if not plan:
        raise ValueError("attempt plan is empty")

    last_error: Optional[BaseException] = None
    timed_out = False
    for attempt in plan:
        if attempt.delay > 0:
            log.debug("%s: waiting %.2fs before %s", label, attempt.delay, attempt.describe())
            await asyncio.sleep(attempt.delay)
        try:
            value = await asyncio.wait_for(operation(attempt), timeout=attempt.timeout)
        except asyncio.TimeoutError as exc:
            last_error, timed_out = exc, True
            if not str(exc):
                last_error = asyncio.TimeoutError(f"Timed out after {attempt.timeout:g}s ({attempt.describe()})")
        except retry_on as exc:
            last_error, timed_out = exc, _is_timeout(exc)
        else:
            if attempt.number > 1:
                log.info("%s succeeded on %s", label, attempt.describe())
            return value, attempt
        log.warning("%s failed on %s: %s", label, attempt.describe(), last_error)

    assert last_error is not None
    raise AttemptsExhausted(last_error, plan[-1], timed_out)


def _is_timeout(exc: BaseException) -> bool:
    # драйверы браузеров выбрасывают собственные классы таймаутов
    return isinstance(exc, TimeoutError) or "timeout" in type(exc).__name__.lower()
