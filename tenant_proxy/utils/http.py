"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

from tenant_proxy.core.config import UpstreamSettings
from tenant_proxy.core.errors import TransportFailureError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


class RetryConfig:
    def __init__(
        self,
        *,
        retries: int = 3,
        backoff_seconds: float = 1.0,
        jitter_seconds: float = 1.0,
        retry_statuses: frozenset[int] = RETRYABLE_STATUS_CODES,
    ) -> None:
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.jitter_seconds = jitter_seconds
        self.retry_statuses = retry_statuses

    @classmethod
    def from_settings(cls, settings: UpstreamSettings) -> "RetryConfig":
        return cls(
            retries=settings.max_retries,
            backoff_seconds=settings.backoff_seconds,
            jitter_seconds=settings.jitter_seconds,
        )

    @property
    def attempts(self) -> int:
        return self.retries + 1

    def delay_for(self, retry_number: int) -> float:
        """Exponential delay for the n-th retry (1-based) plus uniform jitter."""
        jitter = random.uniform(0, self.jitter_seconds) if self.jitter_seconds else 0.0
        return self.backoff_seconds * (2**retry_number) + jitter


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """
    Invoke ``func`` until it yields a non-retryable response.

    Network errors and timeouts are retried, as are responses whose status is in
    ``retry_statuses``. Any other status, 4xx and 5xx included, is returned to
    the caller unchanged. When retries run out on a retryable status the last
    response is returned; when they run out on transport errors a
    ``TransportFailureError`` is raised.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while True:
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            last_exception = exc
            status = None
        else:
            if response.status_code not in config.retry_statuses:
                return response
            if attempt >= config.retries:
                return response
            status = response.status_code
            await response.aclose()

        if attempt >= config.retries:
            break
        attempt += 1
        delay = config.delay_for(attempt)
        logger.warning(
            "Retrying request (retry %s/%s, status=%s, error=%s) in %.2fs",
            attempt,
            config.retries,
            status,
            type(last_exception).__name__ if status is None else None,
            delay,
        )
        await asyncio.sleep(delay)

    raise TransportFailureError(
        f"Upstream request failed after {config.attempts} attempts: "
        f"{type(last_exception).__name__}"
    ) from last_exception


__all__ = ["RETRYABLE_STATUS_CODES", "RetryConfig", "request_with_retry"]
