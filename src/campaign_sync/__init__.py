"""Campaign Sync - Ad Platform to Postgres campaign synchronization.

Fetches every campaign page from the rate-limited Ad Platform API, triggers
the remote per-campaign sync, and upserts each campaign locally:
- Configuration management with environment overrides (pydantic-settings)
- Async API client with rate limiting, token refresh and classified retry
- Idempotent persistence sinks (Postgres, in-memory)
- Sync orchestration with per-campaign fail-open error handling

Python Version: 3.10+ required
"""

from .__version__ import __version__
from .config import SyncConfig, get_config, reset_config
from .connectors.ad_platform import (
    AdPlatformClient,
    AdPlatformError,
    AuthError,
    ClientError,
    MockAdPlatform,
    ServerError,
    TransientError,
)
from .logging_config import StructuredFormatter, configure_logging
from .models import Campaign, SyncOutcome, SyncState
from .storage import (
    CampaignSink,
    InMemoryCampaignSink,
    PersistenceError,
    PostgresCampaignSink,
    build_sink,
)
from .sync import CampaignSyncEngine

__all__ = [
    "AdPlatformClient",
    "AdPlatformError",
    "AuthError",
    "Campaign",
    "CampaignSink",
    "CampaignSyncEngine",
    "ClientError",
    "InMemoryCampaignSink",
    "MockAdPlatform",
    "PersistenceError",
    "PostgresCampaignSink",
    "ServerError",
    "StructuredFormatter",
    "SyncConfig",
    "SyncOutcome",
    "SyncState",
    "TransientError",
    "__version__",
    "build_sink",
    "configure_logging",
    "get_config",
    "reset_config",
]
