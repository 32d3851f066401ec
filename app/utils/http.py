"""HTTP utilities providing retry/backoff semantics for idempotent reads."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it answers with a non-retryable status.

    Transport errors and throttling/5xx responses are retried with linear
    backoff. The last response is returned as-is so callers can classify it;
    the last transport error is re-raised when every attempt failed.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None
    response: httpx.Response | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
            last_exception = None
            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response
        except httpx.TransportError as exc:
            last_exception = exc
        attempt += 1
        if attempt >= config.attempts:
            break
        await asyncio.sleep(config.backoff_seconds * attempt)

    if last_exception is not None:
        raise last_exception
    if response is not None:
        return response
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RETRYABLE_STATUS_CODES", "RetryConfig", "request_with_retry"]
