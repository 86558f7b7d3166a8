"""Resilient executor for calls to unreliable, rate-limited providers.

Every provider call in storycast goes through execute():

    result = await execute(lambda: content("outline", prompt, Outline),
                           COMPLETION_POLICY)

Retry decision (should_retry, overridable per call):
    status 429                       → retry
    status 500–599                   → retry
    code ECONNRESET / ETIMEDOUT /
         rate_limit_exceeded         → retry
    type server_error / timeout      → retry
    any other 4xx                    → fail immediately
    anything unclassified            → fail immediately

Backoff for attempt i (0-indexed): min(initial * 2**i, max) plus up to 10%
uniform jitter, in milliseconds.

The executor holds no state between invocations and performs no I/O of its
own beyond sleeping: each retry is reported as a RetryEvent to the on_retry
listener. The default listener, log_retry, writes one log line per retry.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from storycast.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_CODES = frozenset({"ECONNRESET", "ETIMEDOUT", "rate_limit_exceeded"})
RETRYABLE_TYPES = frozenset({"server_error", "timeout"})
JITTER_RATIO = 0.1


class RetryPolicy(BaseModel):
    """Retry budget and backoff bounds, in milliseconds."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1000, gt=0)
    max_delay: float = Field(default=30000, gt=0)


DEFAULT_POLICY = RetryPolicy()
# Text generation: balanced settings.
COMPLETION_POLICY = RetryPolicy(max_retries=3, initial_delay=1000, max_delay=30000)
# Speech synthesis is expensive, so it gets more patience.
SPEECH_POLICY = RetryPolicy(max_retries=5, initial_delay=2000, max_delay=60000)


class RetryEvent(BaseModel):
    """Emitted once per retry, before the backoff sleep."""

    attempt: int  # 1-based index of the attempt that just failed
    max_retries: int
    message: str
    delay_ms: float


RetryListener = Callable[[RetryEvent], None]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def should_retry(error: BaseException) -> bool:
    """Default retry decision: only transient provider failures retry."""
    status = getattr(error, "status", None)
    code = getattr(error, "code", None)
    error_type = getattr(error, "type", None)

    if status == 429 or code == "rate_limit_exceeded":
        return True
    if isinstance(status, int) and 500 <= status < 600:
        return True
    if code in RETRYABLE_CODES:
        return True
    if error_type in RETRYABLE_TYPES:
        return True
    return False


def error_message(error: BaseException) -> str:
    """Best human-readable message for an error, nested messages included."""
    text = str(error)
    if text:
        return text
    nested = getattr(error, "nested_message", None)
    if nested:
        return nested
    return "Unknown error"


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------

def compute_delay(
    attempt: int,
    policy: RetryPolicy = DEFAULT_POLICY,
    rand: Callable[[], float] = random.random,
) -> float:
    """Backoff before retrying after the given 0-indexed attempt, in ms."""
    base = min(policy.initial_delay * (2 ** attempt), policy.max_delay)
    return base + rand() * base * JITTER_RATIO


def log_retry(event: RetryEvent) -> None:
    logger.info(
        "Retry attempt %d/%d failed: %s. Retrying in %dms",
        event.attempt, event.max_retries, event.message, round(event.delay_ms),
    )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_POLICY,
    *,
    should_retry: Callable[[BaseException], bool] = should_retry,
    on_retry: RetryListener | None = log_retry,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """Run operation, retrying transient failures with exponential backoff.

    Non-retryable errors propagate unchanged on the attempt they occur.
    When the retry budget is spent on retryable errors, a single
    RetryExhaustedError is raised naming the budget and the last message.
    """
    last_error: BaseException | None = None

    for attempt in range(policy.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if not should_retry(e):
                raise
            last_error = e
            if attempt == policy.max_retries:
                break

            delay = compute_delay(attempt, policy, rand)
            if on_retry is not None:
                on_retry(RetryEvent(
                    attempt=attempt + 1,
                    max_retries=policy.max_retries,
                    message=error_message(e),
                    delay_ms=delay,
                ))
            await sleep(delay / 1000)

    assert last_error is not None
    raise RetryExhaustedError(
        f"Max retries ({policy.max_retries}) exceeded. "
        f"Last error: {error_message(last_error)}",
        max_retries=policy.max_retries,
        last_error=last_error,
    ) from last_error
