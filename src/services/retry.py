"""
Retry with exponential backoff for outbound GitHub API calls
"""

import asyncio
import errno
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

RETRYABLE_ERROR_CODES = {"ECONNRESET", "ETIMEDOUT", "ENOTFOUND", "ECONNREFUSED", "EAI_AGAIN"}
RETRYABLE_ERRNOS = {errno.ECONNRESET, errno.ETIMEDOUT, errno.ECONNREFUSED}


class FailureClass(str, Enum):
    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings; ``max_attempts`` counts retries after the first try"""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay before retry number ``attempt`` (1-based), clamped to max_delay"""
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return min(
        policy.initial_delay * policy.backoff_multiplier ** (attempt - 1),
        policy.max_delay,
    )


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def _message_of(error: BaseException) -> str:
    parts = [str(error)]
    response_data = getattr(error, "response_data", None)
    if isinstance(response_data, dict) and response_data.get("message"):
        parts.append(str(response_data["message"]))
    return " ".join(parts).lower()


def classify_error(error: BaseException) -> FailureClass:
    """
    Decide whether a failed outbound call is worth retrying

    Retryable: 429, 5xx, 403 mentioning a rate limit, transport errors
    (connection reset, timeout, DNS) and, as a catch-all for other client
    libraries, messages mentioning "network" or "timeout".
    """
    status = _status_of(error)
    message = _message_of(error)

    if status == 403 and "rate limit" in message:
        return FailureClass.RETRYABLE
    if status == 429:
        return FailureClass.RETRYABLE
    if status is not None and 500 <= status < 600:
        return FailureClass.RETRYABLE

    # Wrapped transport failures keep the original as __cause__
    for candidate in (error, error.__cause__):
        if candidate is None:
            continue
        if isinstance(candidate, (httpx.TransportError, asyncio.TimeoutError, socket.gaierror)):
            return FailureClass.RETRYABLE
        if isinstance(candidate, OSError) and candidate.errno in RETRYABLE_ERRNOS:
            return FailureClass.RETRYABLE
        code = getattr(candidate, "code", None)
        if isinstance(code, str) and code in RETRYABLE_ERROR_CODES:
            return FailureClass.RETRYABLE

    if "network" in message or "timeout" in message:
        return FailureClass.RETRYABLE

    return FailureClass.NON_RETRYABLE


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    label: str = "operation",
    classifier: Callable[[BaseException], FailureClass] = classify_error,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with bounded retries and exponential backoff

    The last error is re-raised unchanged once retries are exhausted or a
    non-retryable error occurs. Cancelling the caller cancels a pending
    backoff sleep.
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        try:
            if attempt > 0:
                logger.info("Retrying operation", label=label, attempt=attempt, max_attempts=policy.max_attempts)

            result = await operation()

            if attempt > 0:
                logger.info("Operation succeeded after retry", label=label, retries=attempt)
            return result

        except Exception as e:
            if classifier(e) == FailureClass.NON_RETRYABLE:
                logger.error("Operation failed with non-retryable error", label=label, error=str(e))
                raise

            attempt += 1
            if attempt > policy.max_attempts:
                logger.error(
                    "Operation failed after retries",
                    label=label,
                    retries=policy.max_attempts,
                    error=str(e),
                )
                raise

            delay = compute_delay(policy, attempt)
            logger.warning(
                "Operation failed, backing off",
                label=label,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=delay,
                error=str(e),
            )
            await sleep(delay)
