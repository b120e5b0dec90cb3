"""Campaign persistence sinks.

A sink stores campaigns by upsert keyed on ``id`` so a sync can be re-run
safely. Two implementations:

- PostgresCampaignSink: psycopg 3 with a psycopg_pool connection pool
- InMemoryCampaignSink: dict-backed, for USE_MOCK_DB runs and tests

Sink methods are blocking; the sync engine calls them through
``asyncio.to_thread``.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from .config import SyncConfig
from .models import Campaign

logger = logging.getLogger("campaign_sync.storage")

__all__ = [
    "CampaignSink",
    "InMemoryCampaignSink",
    "PersistenceError",
    "PostgresCampaignSink",
    "build_sink",
]

# Columns persisted from Campaign, in parameter order
CAMPAIGN_COLUMNS = ("id", "name", "status", "budget", "impressions", "clicks", "conversions")

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS campaigns (
        id TEXT PRIMARY KEY,
        name TEXT,
        status TEXT,
        budget NUMERIC,
        impressions BIGINT,
        clicks BIGINT,
        conversions BIGINT,
        synced_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

UPSERT_SQL = """
    INSERT INTO campaigns (
        id, name, status, budget, impressions, clicks, conversions, synced_at
    ) VALUES (
        %s, %s, %s, %s, %s, %s, %s, NOW()
    )
    ON CONFLICT (id) DO UPDATE SET
        name = EXCLUDED.name,
        status = EXCLUDED.status,
        budget = EXCLUDED.budget,
        impressions = EXCLUDED.impressions,
        clicks = EXCLUDED.clicks,
        conversions = EXCLUDED.conversions,
        synced_at = NOW()
"""


class PersistenceError(Exception):
    """Raised when a sink cannot connect or write."""


@runtime_checkable
class CampaignSink(Protocol):
    """Idempotent campaign store."""

    def connect(self) -> None:
        """Open the sink. Calling it again on an open sink is a no-op."""
        ...

    def upsert(self, campaign: Campaign) -> None:
        """Insert or overwrite the campaign keyed by its id."""
        ...

    def close(self) -> None:
        """Release resources. Safe to call more than once."""
        ...


def campaign_values(campaign: Campaign) -> tuple[Any, ...]:
    """Query parameters for UPSERT_SQL, in CAMPAIGN_COLUMNS order."""
    return tuple(getattr(campaign, column) for column in CAMPAIGN_COLUMNS)


class PostgresCampaignSink:
    """Postgres-backed sink using a psycopg_pool ConnectionPool.

    Values are always passed as query parameters, never interpolated.

    Example:
        >>> sink = PostgresCampaignSink.from_config(get_config())
        >>> sink.connect()
        >>> try:
        ...     sink.upsert(campaign)
        ... finally:
        ...     sink.close()
    """

    def __init__(
        self,
        conninfo: str,
        max_size: int = 10,
        connect_timeout: float = 10.0,
    ) -> None:
        self._conninfo = conninfo
        self._max_size = max_size
        self._connect_timeout = connect_timeout
        self._pool: ConnectionPool | None = None

    @classmethod
    def from_config(cls, config: SyncConfig) -> "PostgresCampaignSink":
        return cls(
            config.get_db_conninfo(),
            max_size=config.db_pool_max_size,
            connect_timeout=config.db_connect_timeout_s,
        )

    def connect(self) -> None:
        if self._pool is not None:
            return

        pool = ConnectionPool(
            self._conninfo,
            min_size=1,
            max_size=self._max_size,
            open=False,
        )
        try:
            pool.open(wait=True, timeout=self._connect_timeout)
            with pool.connection() as conn:
                conn.execute(CREATE_TABLE_SQL)
        except (PoolTimeout, psycopg.Error) as e:
            pool.close()
            logger.error("database_connect_failed", extra={"error": str(e)})
            raise PersistenceError(f"Failed to connect to database: {e}") from e

        self._pool = pool
        logger.info("database_connected")

    def upsert(self, campaign: Campaign) -> None:
        if self._pool is None:
            raise PersistenceError("Database not initialized. Call connect() first.")

        try:
            # pool.connection() commits on clean exit
            with self._pool.connection() as conn:
                conn.execute(UPSERT_SQL, campaign_values(campaign))
        except (PoolTimeout, psycopg.Error) as e:
            logger.error(
                "campaign_save_failed",
                extra={"campaign_id": campaign.id, "error": str(e)},
            )
            raise PersistenceError(f"Failed to save campaign {campaign.id}: {e}") from e

        logger.debug("campaign_saved", extra={"campaign_id": campaign.id})

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None
            logger.info("database_pool_closed")


class InMemoryCampaignSink:
    """Dict-backed sink keyed by campaign id.

    Attributes:
        records: Stored rows (persisted columns plus synced_at)
    """

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.connected = False
        self._lock = threading.Lock()

    def connect(self) -> None:
        if not self.connected:
            self.connected = True
            logger.info("mock_database_enabled")

    def upsert(self, campaign: Campaign) -> None:
        if not self.connected:
            raise PersistenceError("Database not initialized. Call connect() first.")

        row = dict(zip(CAMPAIGN_COLUMNS, campaign_values(campaign)))
        row["synced_at"] = datetime.now(timezone.utc)
        with self._lock:
            self.records[campaign.id] = row
        logger.info(
            "mock_db_upsert",
            extra={"campaign_id": campaign.id, "campaign_name": campaign.name},
        )

    def close(self) -> None:
        self.connected = False


def build_sink(config: SyncConfig) -> CampaignSink:
    """Sink selected by USE_MOCK_DB."""
    if config.use_mock_db:
        return InMemoryCampaignSink()
    return PostgresCampaignSink.from_config(config)
