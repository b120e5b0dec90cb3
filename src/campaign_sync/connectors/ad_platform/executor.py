"""Request executor with classified retry and exponential backoff.

Every logical API call goes through ``RequestExecutor.call``. Each attempt:

1. obtains a bearer token from TokenManager
2. waits on the RateLimiter
3. issues the request with the configured timeout
4. classifies the outcome

Classification:
- 2xx: return parsed JSON
- 429: wait Retry-After (or exponential backoff) and retry, never exhausts
- 401: invalidate the token and retry, at most MAX_AUTH_RETRIES times
- 5xx, timeouts, network errors: exponential backoff up to max_retries
- other 4xx: raise ClientError, no retry

Retries are an explicit loop; each failure class keeps its own counter so a
burst of 429s never eats into the 5xx retry budget.
"""

import asyncio
import logging
import random
from collections import Counter
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .auth import TokenManager
from .errors import (
    AdPlatformError,
    AuthError,
    ClientError,
    RateLimitSignal,
    ServerError,
    TransientError,
)
from .rate_limiter import RateLimiter

logger = logging.getLogger("campaign_sync.ad_platform.executor")

__all__ = ["RequestExecutor", "parse_retry_after"]


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds.

    HTTP-date values and garbage are ignored (None); the caller falls back
    to exponential backoff.
    """
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds


class RequestExecutor:
    """Issues one logical HTTP operation with retry classification.

    Attributes:
        retry_counts: Retries performed so far, keyed by reason
            (rate_limited, unauthorized, server_error, timeout, network_error)

    Example:
        >>> executor = RequestExecutor(http, tokens, limiter)
        >>> payload = await executor.call("GET", "/api/campaigns", params={"page": 1})
    """

    # Cap on 401-driven retries per call (prevents refresh loops on bad credentials)
    MAX_AUTH_RETRIES = 2

    def __init__(
        self,
        http: httpx.AsyncClient,
        token_manager: TokenManager,
        rate_limiter: RateLimiter,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        rate_limit_backoff_base: float = 2.0,
        max_backoff: float = 60.0,
        jitter: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize executor.

        Args:
            http: Shared httpx client (base_url already set)
            token_manager: Source of bearer tokens
            rate_limiter: Limiter consulted before every attempt
            timeout: Per-attempt timeout in seconds
            max_retries: Retry ceiling for 5xx, timeouts and network errors
            backoff_base: Base seconds for 5xx/network backoff
            rate_limit_backoff_base: Base seconds for 429 without Retry-After
            max_backoff: Upper bound for any single wait
            jitter: Add up to one second of random jitter to backoff waits
            sleep: Coroutine used to wait between attempts
        """
        self._http = http
        self._tokens = token_manager
        self._limiter = rate_limiter
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.rate_limit_backoff_base = rate_limit_backoff_base
        self.max_backoff = max_backoff
        self.jitter = jitter
        self._sleep = sleep
        self.retry_counts: Counter[str] = Counter()

    async def call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Perform one logical API operation.

        Args:
            method: HTTP method
            path: Path relative to the client's base URL
            params: Query parameters
            json: JSON request body

        Returns:
            Parsed JSON payload of the successful response (None if empty)

        Raises:
            AuthError: Token exchange failed or 401 retries exhausted
            ServerError: 5xx persisted past max_retries
            TransientError: Timeout/network fault persisted past max_retries
            ClientError: Non-retryable 4xx
        """
        attempt = 0
        rate_limited = 0
        transient = 0
        unauthorized = 0

        while True:
            attempt += 1
            # Exchange failures are logged by TokenManager
            token = await self._tokens.get_token()
            try:
                await self._limiter.acquire()

                logger.debug(
                    "api_request",
                    extra={"method": method, "path": path, "attempt": attempt},
                )
                try:
                    response = await self._http.request(
                        method,
                        path,
                        params=params,
                        json=json,
                        headers={
                            "Authorization": f"Bearer {token}",
                            "Content-Type": "application/json",
                        },
                        timeout=self.timeout,
                    )
                except httpx.TimeoutException as e:
                    if transient < self.max_retries:
                        wait = self._backoff(self.backoff_base, transient)
                        transient += 1
                        await self._retry("timeout", method, path, attempt, wait)
                        continue
                    raise TransientError(
                        f"Request timed out after {self.max_retries} retries: {e}"
                    ) from e
                except httpx.TransportError as e:
                    if transient < self.max_retries:
                        wait = self._backoff(self.backoff_base, transient)
                        transient += 1
                        await self._retry("network_error", method, path, attempt, wait)
                        continue
                    raise TransientError(
                        f"Network error after {self.max_retries} retries: {e}"
                    ) from e

                status = response.status_code

                if 200 <= status < 300:
                    return self._parse(response)

                try:
                    self._raise_for_rate_limit(response)
                except RateLimitSignal as signal:
                    if signal.retry_after is not None:
                        wait = min(signal.retry_after, self.max_backoff)
                    else:
                        wait = self._backoff(self.rate_limit_backoff_base, rate_limited)
                    rate_limited += 1
                    await self._retry("rate_limited", method, path, attempt, wait)
                    continue

                if status == 401:
                    self._tokens.invalidate()
                    if unauthorized < self.MAX_AUTH_RETRIES:
                        unauthorized += 1
                        await self._retry("unauthorized", method, path, attempt, 0.0)
                        continue
                    raise AuthError(
                        f"Unauthorized after {self.MAX_AUTH_RETRIES} token refreshes",
                        status_code=401,
                    )

                if status >= 500:
                    if transient < self.max_retries:
                        wait = self._backoff(self.backoff_base, transient)
                        transient += 1
                        await self._retry("server_error", method, path, attempt, wait, status)
                        continue
                    raise ServerError(
                        f"Server error {status} after {self.max_retries} retries",
                        status_code=status,
                    )

                raise ClientError(
                    f"API error {status}: {_error_message(response)}",
                    status_code=status,
                )

            except AdPlatformError as e:
                logger.error(
                    "api_request_failed",
                    extra={
                        "method": method,
                        "path": path,
                        "attempts": attempt,
                        "status_code": e.status_code,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                )
                raise

    def _backoff(self, base: float, retries_so_far: int) -> float:
        wait = base * (2**retries_so_far)
        if self.jitter:
            wait += random.uniform(0, 1)
        return min(wait, self.max_backoff)

    async def _retry(
        self,
        reason: str,
        method: str,
        path: str,
        attempt: int,
        wait: float,
        status_code: int | None = None,
    ) -> None:
        self.retry_counts[reason] += 1
        logger.warning(
            "api_retry",
            extra={
                "reason": reason,
                "method": method,
                "path": path,
                "attempt": attempt + 1,
                "wait_seconds": round(wait, 3),
                "status_code": status_code,
            },
        )
        if wait > 0:
            await self._sleep(wait)

    @staticmethod
    def _raise_for_rate_limit(response: httpx.Response) -> None:
        """Raise RateLimitSignal carrying the Retry-After hint on a 429."""
        if response.status_code == 429:
            raise RateLimitSignal(parse_retry_after(response.headers.get("Retry-After")))

    @staticmethod
    def _parse(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ClientError(
                "Response body was not valid JSON", status_code=response.status_code
            ) from e


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json() if response.content else {}
    except (ValueError, UnicodeDecodeError):
        body = {}
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or response.text
