"""Retry helpers for upstream calls: bounded attempts, exponential backoff, hard timeout."""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_DELAY = 0.1


class MalformedPayload(ValueError):
    """An upstream answered, but not with the shape we expect."""


class FetchErrorKind(str, enum.Enum):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK = "network"
    MALFORMED = "malformed"


@dataclass(slots=True, frozen=True)
class FetchError:
    kind: FetchErrorKind
    message: str = ""
    status_code: int | None = None

    def __str__(self) -> str:
        if self.kind is FetchErrorKind.HTTP_STATUS:
            return f"{self.kind.value}({self.status_code})"
        if self.message:
            return f"{self.kind.value}: {self.message}"
        return self.kind.value


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class Err:
    error: FetchError

    @property
    def ok(self) -> bool:
        return False


FetchResult = Union[Ok[T], Err]


def classify_exception(exc: BaseException) -> FetchError:
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return FetchError(FetchErrorKind.TIMEOUT, "attempt timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        return FetchError(
            FetchErrorKind.HTTP_STATUS,
            str(exc),
            status_code=exc.response.status_code,
        )
    if isinstance(exc, (httpx.TransportError, OSError)):
        return FetchError(FetchErrorKind.NETWORK, str(exc))
    if isinstance(exc, (MalformedPayload, ValueError, KeyError, TypeError)):
        return FetchError(FetchErrorKind.MALFORMED, str(exc))
    return FetchError(FetchErrorKind.NETWORK, f"{type(exc).__name__}: {exc}")


async def resilient_call(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 2,
    timeout: float = 8.0,
    base_delay: float = DEFAULT_BASE_DELAY,
    jitter: float = 0.0,
    label: str = "upstream",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FetchResult[T]:
    """Run ``operation`` up to ``max_retries + 1`` times.

    Every attempt is bounded by ``timeout`` seconds; ``asyncio.wait_for`` cancels
    the attempt when the timer fires, so the underlying request is released
    rather than left running. Between attempts we wait
    ``base_delay * 2 ** attempt`` seconds (plus up to ``jitter`` seconds).

    Never raises for upstream failures: the outcome is ``Ok(value)`` or
    ``Err(FetchError)`` carrying the last failure.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")
    if timeout <= 0:
        raise ValueError("timeout must be > 0")

    attempts = max_retries + 1
    last_error = FetchError(FetchErrorKind.NETWORK, "no attempt made")
    for attempt in range(attempts):
        try:
            value = await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = classify_exception(exc)
            logger.warning(
                "%s attempt %s/%s failed: %s", label, attempt + 1, attempts, last_error
            )
            if attempt == attempts - 1:
                break
            delay = base_delay * (2**attempt)
            if jitter:
                delay += random.uniform(0, jitter)
            await sleep(delay)
        else:
            return Ok(value)
    logger.error("%s gave up after %s attempts: %s", label, attempts, last_error)
    return Err(last_error)
