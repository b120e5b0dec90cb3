"""Bearer token lifecycle for the Ad Platform API.

Exchanges Basic credentials for a bearer token at ``POST /auth/token`` and
caches it until shortly before it expires. The exchange goes through the
rate limiter (it counts against the quota) but never through the retrying
executor: a failed exchange surfaces immediately as AuthError.
"""

import base64
import logging
import time
from collections.abc import Callable

import httpx

from ...models import Credential
from .errors import AuthError
from .rate_limiter import RateLimiter

logger = logging.getLogger("campaign_sync.ad_platform.auth")

__all__ = ["TokenManager"]

AUTH_PATH = "/auth/token"


class TokenManager:
    """Acquires and caches the bearer credential.

    Attributes:
        credential: Cached Credential, or None when absent/invalidated
        exchanges: Number of authentication exchanges attempted

    Example:
        >>> tokens = TokenManager(http, limiter, "user@example.com", "secret")
        >>> token = await tokens.get_token()   # exchange
        >>> token = await tokens.get_token()   # cached
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        rate_limiter: RateLimiter,
        username: str,
        password: str,
        timeout: float = 10.0,
        default_lifetime: float = 3600.0,
        safety_margin: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize token manager.

        Args:
            http: Shared httpx client (base_url already set)
            rate_limiter: Limiter shared with the request executor
            username: Basic Auth username
            password: Basic Auth password
            timeout: Per-call timeout in seconds
            default_lifetime: Lifetime assumed when the server omits expires_in
            safety_margin: Seconds subtracted from the lifetime
            clock: Monotonic time source
        """
        self._http = http
        self._rate_limiter = rate_limiter
        self._timeout = timeout
        self._default_lifetime = default_lifetime
        self._safety_margin = safety_margin
        self._clock = clock

        encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
        self._basic_auth = f"Basic {encoded}"

        self.credential: Credential | None = None
        self.exchanges = 0

    async def get_token(self) -> str:
        """Return a valid bearer token, authenticating if needed.

        Raises:
            AuthError: If the credential exchange fails for any reason
        """
        if self.credential is not None and self.credential.is_valid(self._clock()):
            return self.credential.token

        self.credential = await self._authenticate()
        return self.credential.token

    def invalidate(self) -> None:
        """Drop the cached credential (called after a 401)."""
        if self.credential is not None:
            logger.info("token_invalidated")
        self.credential = None

    async def _authenticate(self) -> Credential:
        logger.info("authenticating")
        self.exchanges += 1

        await self._rate_limiter.acquire()
        try:
            response = await self._http.post(
                AUTH_PATH,
                headers={"Authorization": self._basic_auth},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            logger.error("authentication_failed", extra={"error": "timeout"})
            raise AuthError(f"Auth request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error("authentication_failed", extra={"error": str(e)})
            raise AuthError(f"Auth request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "authentication_failed",
                extra={"status_code": response.status_code},
            )
            raise AuthError(
                f"Auth failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error("authentication_failed", extra={"error": "invalid_json"})
            raise AuthError("Auth response was not valid JSON") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            logger.error("authentication_failed", extra={"error": "missing_access_token"})
            raise AuthError("Auth response missing access_token")

        lifetime = data.get("expires_in")
        if not isinstance(lifetime, (int, float)) or isinstance(lifetime, bool) or lifetime <= 0:
            lifetime = self._default_lifetime

        # A lifetime inside the margin expires at once; the token serves only
        # the call that fetched it
        expires_at = self._clock() + max(lifetime - self._safety_margin, 0)
        logger.info(
            "authentication_successful",
            extra={"expires_in_seconds": lifetime},
        )
        return Credential(token=token, expires_at=expires_at)
