from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar, Union

import httpx
from tenacity import Retrying, before_sleep_log, retry_if_result, stop_after_attempt, wait_exponential

from .ratelimit import SlidingWindowLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_HEADERS = {
    "User-Agent": "history-ingest/0.1 (historical events ingestion; educational)",
    "Accept": "application/json",
}


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class RetryableFailure:
    """Transient failure (429, 5xx, transport error). Returned once retries are exhausted."""
    reason: str
    status_code: Optional[int] = None
    attempts: int = 1
    ok: bool = False


@dataclass(frozen=True)
class FatalFailure:
    """Non-retryable failure, e.g. a 4xx other than 429. Never retried."""
    reason: str
    status_code: Optional[int] = None
    ok: bool = False


FetchResult = Union[Success[Any], RetryableFailure, FatalFailure]


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def build_http_client(user_agent: Optional[str] = None, timeout_s: float = 60.0, **kwargs: Any) -> httpx.Client:
    headers = dict(DEFAULT_HEADERS)
    if user_agent:
        headers["User-Agent"] = user_agent
    timeout = httpx.Timeout(timeout_s, connect=10.0)
    return httpx.Client(headers=headers, timeout=timeout, follow_redirects=True, **kwargs)


class RateLimitedFetcher:
    """
    GET with a sliding-window request cap and bounded exponential backoff.

    fetch() never raises for HTTP or transport problems: it returns a tagged
    result so callers can tell "skip this query" apart from "abort the run".
    """

    def __init__(
        self,
        client: httpx.Client,
        limiter: SlidingWindowLimiter,
        *,
        max_attempts: int = 3,
        backoff_base_s: float = 1.0,
        max_backoff_s: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.client = client
        self.limiter = limiter
        self.max_attempts = max_attempts
        self.backoff_base_s = backoff_base_s
        self.max_backoff_s = max_backoff_s
        self._sleep = sleep

    def _attempt(self, url: str, params: Optional[Mapping[str, Any]], headers: Optional[Dict[str, str]]) -> FetchResult:
        self.limiter.acquire()
        try:
            r = self.client.get(url, params=params, headers=headers)
        except httpx.TransportError as e:
            return RetryableFailure(reason=f"{type(e).__name__}: {e}")
        except httpx.RequestError as e:
            # redirect loops, undecodable bodies
            return FatalFailure(reason=f"{type(e).__name__}: {e}")

        if r.is_success:
            return Success(r)
        if is_retryable_status(r.status_code):
            return RetryableFailure(reason=f"HTTP {r.status_code}", status_code=r.status_code)
        return FatalFailure(reason=f"HTTP {r.status_code}: {r.text[:300]}", status_code=r.status_code)

    def fetch(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> FetchResult:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base_s, max=self.max_backoff_s),
            retry=retry_if_result(lambda r: isinstance(r, RetryableFailure)),
            retry_error_callback=lambda state: replace(state.outcome.result(), attempts=state.attempt_number),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )
        result = retrying(self._attempt, url, params, headers)

        if isinstance(result, RetryableFailure):
            logger.error("giving up on %s after %d attempts: %s", url, result.attempts, result.reason)
        elif isinstance(result, FatalFailure):
            logger.warning("non-retryable response from %s: %s", url, result.reason)
        return result
