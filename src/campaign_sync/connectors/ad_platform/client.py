"""Ad Platform REST API client.

Provides an async httpx-based client that wires the request pipeline
together: one shared httpx.AsyncClient, a RateLimiter, a TokenManager and a
RequestExecutor. Every call, including the token exchange, shares the same
rate limiter so the whole process stays within the API quota.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from ...__version__ import __version__
from ...config import SyncConfig
from ...models import Campaign
from .auth import TokenManager
from .executor import RequestExecutor
from .mock_api import MockAdPlatform
from .paginator import CampaignPaginator
from .rate_limiter import RateLimiter

logger = logging.getLogger("campaign_sync.ad_platform.client")

__all__ = ["AdPlatformClient"]


class AdPlatformClient:
    """Ad Platform API client using httpx with bearer token auth.

    Attributes:
        base_url: API root URL
        api_prefix: Path prefix for campaign endpoints
        page_limit: Campaigns requested per page
        rate_limiter: Shared RateLimiter
        tokens: Shared TokenManager
        executor: RequestExecutor used for all authenticated calls

    Example:
        >>> async with AdPlatformClient("http://localhost:3001", "user", "pass") as client:
        ...     campaigns = await client.fetch_all_campaigns()
        ...     await client.sync_campaign(campaigns[0].id)
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        api_prefix: str = "/api",
        min_request_interval: float = 6.5,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        rate_limit_backoff_base: float = 2.0,
        max_backoff: float = 60.0,
        backoff_jitter: bool = False,
        token_default_lifetime: float = 3600.0,
        token_safety_margin: float = 30.0,
        page_limit: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize client and its request pipeline.

        Args:
            base_url: API root URL (e.g., http://localhost:3001)
            username: Basic Auth username for the token exchange
            password: Basic Auth password for the token exchange
            api_prefix: Path prefix for campaign endpoints
            min_request_interval: Minimum seconds between requests
            timeout: Per-request timeout in seconds
            max_retries: Retry ceiling for 5xx, timeouts and network errors
            backoff_base: Base seconds for 5xx/network backoff
            rate_limit_backoff_base: Base seconds for 429 backoff
            max_backoff: Upper bound for any single wait
            backoff_jitter: Add random jitter to backoff waits
            token_default_lifetime: Lifetime assumed when expires_in is absent
            token_safety_margin: Seconds subtracted from token lifetime
            page_limit: Campaigns requested per page
            transport: Optional httpx transport (mock API, tests)
            clock: Monotonic time source shared by limiter and token cache
            sleep: Coroutine used for every wait
        """
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self.page_limit = page_limit

        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": "application/json",
                "User-Agent": f"campaign-sync/{__version__}",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        self.rate_limiter = RateLimiter(min_request_interval, clock=clock, sleep=sleep)
        self.tokens = TokenManager(
            self._http,
            self.rate_limiter,
            username,
            password,
            timeout=timeout,
            default_lifetime=token_default_lifetime,
            safety_margin=token_safety_margin,
            clock=clock,
        )
        self.executor = RequestExecutor(
            self._http,
            self.tokens,
            self.rate_limiter,
            timeout=timeout,
            max_retries=max_retries,
            backoff_base=backoff_base,
            rate_limit_backoff_base=rate_limit_backoff_base,
            max_backoff=max_backoff,
            jitter=backoff_jitter,
            sleep=sleep,
        )

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AdPlatformClient":
        """Build a client from SyncConfig.

        With ``use_mock_api`` and no explicit transport, requests are served
        by an in-process MockAdPlatform.
        """
        username = config.api_username
        password = config.api_password.get_secret_value()

        if transport is None and config.use_mock_api:
            mock = MockAdPlatform(
                campaign_count=config.mock_campaign_count,
                api_prefix=config.api_prefix,
            )
            if username and password:
                mock.username, mock.password = username, password
            else:
                username, password = mock.username, mock.password
            transport = mock.transport()
            logger.info(
                "mock_api_enabled",
                extra={"campaigns": config.mock_campaign_count},
            )

        return cls(
            config.api_base_url,
            username,
            password,
            api_prefix=config.api_prefix,
            min_request_interval=config.min_request_interval_ms / 1000.0,
            timeout=config.request_timeout_ms / 1000.0,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base_ms / 1000.0,
            rate_limit_backoff_base=config.rate_limit_backoff_base_ms / 1000.0,
            max_backoff=config.max_backoff_ms / 1000.0,
            backoff_jitter=config.backoff_jitter,
            token_default_lifetime=float(config.token_default_lifetime_s),
            token_safety_margin=float(config.token_safety_margin_s),
            page_limit=config.page_limit,
            transport=transport,
        )

    async def __aenter__(self) -> "AdPlatformClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit -- close httpx client."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._http.aclose()

    # --- Campaign Endpoints ---

    @property
    def campaigns_path(self) -> str:
        return f"{self.api_prefix}/campaigns"

    async def get_campaigns(self, page: int, limit: int | None = None) -> Any:
        """Fetch one raw page of campaigns."""
        return await self.executor.call(
            "GET",
            self.campaigns_path,
            params={"page": page, "limit": limit or self.page_limit},
        )

    async def sync_campaign(self, campaign_id: str) -> Any:
        """Trigger the remote sync action for one campaign."""
        return await self.executor.call(
            "POST",
            f"{self.campaigns_path}/{quote(campaign_id, safe='')}/sync",
            json={"campaign_id": campaign_id},
        )

    def paginator(self) -> CampaignPaginator:
        """New paginator over the campaign listing."""
        return CampaignPaginator(self.executor, self.campaigns_path, limit=self.page_limit)

    async def fetch_all_campaigns(self) -> list[Campaign]:
        """Fetch every campaign across all pages."""
        return await self.paginator().fetch_all()

    async def iter_campaigns(self) -> AsyncIterator[Campaign]:
        """Yield campaigns page by page as they are fetched."""
        async for records in self.paginator().iter_pages():
            for campaign in records:
                yield campaign
