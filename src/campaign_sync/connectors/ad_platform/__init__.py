"""Ad Platform API integration package.

Provides the async API client and its request pipeline: minimum-interval
rate limiting, bearer token lifecycle, classified retry with exponential
backoff, and page-number pagination. Includes an in-process mock of the API
for offline runs and tests.
"""

from .auth import TokenManager
from .client import AdPlatformClient
from .errors import (
    AdPlatformError,
    AuthError,
    ClientError,
    RateLimitSignal,
    ServerError,
    TransientError,
)
from .executor import RequestExecutor
from .mock_api import MockAdPlatform, generate_campaigns
from .paginator import CampaignPaginator
from .rate_limiter import RateLimiter

__all__ = [
    "AdPlatformClient",
    "AdPlatformError",
    "AuthError",
    "CampaignPaginator",
    "ClientError",
    "MockAdPlatform",
    "RateLimitSignal",
    "RateLimiter",
    "RequestExecutor",
    "ServerError",
    "TokenManager",
    "TransientError",
    "generate_campaigns",
]
