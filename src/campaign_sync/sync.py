"""Campaign sync orchestrator.

Pipeline Flow:
1. Connect the persistence sink
2. Fetch every campaign page (pagination completes before any record is processed)
3. For each campaign: trigger the remote sync action, then upsert locally
4. Report successful / failed / total

Error Handling:
- Per-campaign fail-open: any error (auth included) is logged, counted,
  and the run moves to the next campaign
- Connect or pagination failure (auth included) is fatal and propagates
- Sink is closed on every exit path, including cancellation
"""

import asyncio
import logging
import time

from .config import SyncConfig
from .connectors.ad_platform.client import AdPlatformClient
from .metrics import push_sync_metrics
from .models import Campaign, SyncOutcome, SyncState
from .storage import CampaignSink

logger = logging.getLogger("campaign_sync.sync")

__all__ = ["CampaignSyncEngine"]


class CampaignSyncEngine:
    """Orchestrates Ad Platform to local store synchronization.

    Attributes:
        client: AdPlatformClient used for listing and per-campaign sync
        sink: CampaignSink receiving upserts
        config: Optional SyncConfig (metrics push settings)
        state: Current SyncState
        current_index: Index of the campaign being processed, or None
        outcome: SyncOutcome of the last run, or None
    """

    def __init__(
        self,
        client: AdPlatformClient,
        sink: CampaignSink,
        config: SyncConfig | None = None,
    ) -> None:
        self.client = client
        self.sink = sink
        self.config = config
        self.state = SyncState.IDLE
        self.current_index: int | None = None
        self.outcome: SyncOutcome | None = None

    async def run(self) -> SyncOutcome:
        """Run one full sync.

        Returns:
            SyncOutcome with success/failure/total counts

        Raises:
            PersistenceError: Sink could not be opened
            AdPlatformError: Pagination failed (including authentication)
        """
        start = time.monotonic()
        outcome = SyncOutcome()
        logger.info("sync_start")

        try:
            self._transition(SyncState.CONNECTING)
            await asyncio.to_thread(self.sink.connect)

            self._transition(SyncState.FETCHING)
            campaigns = await self.client.fetch_all_campaigns()
            outcome.total = len(campaigns)
            logger.info("campaigns_to_process", extra={"total": outcome.total})

            self._transition(SyncState.PROCESSING)
            for index, campaign in enumerate(campaigns):
                self.current_index = index
                await self._process(index, campaign, outcome)
            self.current_index = None

            outcome.duration_seconds = time.monotonic() - start
            self._transition(SyncState.COMPLETED)
            logger.info("sync_complete", extra=outcome.to_dict())
            return outcome

        except asyncio.CancelledError:
            outcome.duration_seconds = time.monotonic() - start
            self._transition(SyncState.FATALLY_FAILED)
            logger.warning("sync_cancelled", extra=outcome.to_dict())
            raise

        except Exception as e:
            outcome.duration_seconds = time.monotonic() - start
            self._transition(SyncState.FATALLY_FAILED)
            logger.error(
                "sync_failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise

        finally:
            self.outcome = outcome
            try:
                await asyncio.to_thread(self.sink.close)
            finally:
                self._push_metrics(outcome)

    async def _process(self, index: int, campaign: Campaign, outcome: SyncOutcome) -> None:
        logger.info(
            "processing_campaign",
            extra={
                "position": f"{index + 1}/{outcome.total}",
                "campaign_id": campaign.id,
                "campaign_name": campaign.name,
            },
        )
        try:
            await self.client.sync_campaign(campaign.id)
            await asyncio.to_thread(self.sink.upsert, campaign)
        except Exception as e:
            outcome.failure_count += 1
            outcome.failed_ids.append(campaign.id)
            logger.error(
                "campaign_sync_failed",
                extra={
                    "campaign_id": campaign.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            return

        outcome.success_count += 1
        logger.info("campaign_synced", extra={"campaign_id": campaign.id})

    def _transition(self, state: SyncState) -> None:
        logger.debug(
            "sync_state_change",
            extra={"from_state": self.state.value, "to_state": state.value},
        )
        self.state = state

    def _push_metrics(self, outcome: SyncOutcome) -> None:
        if self.config is None or not self.config.pushgateway_enabled:
            return
        push_sync_metrics(
            self.config.pushgateway_url,
            outcome,
            "completed" if self.state is SyncState.COMPLETED else "failed",
            retry_counts=self.client.executor.retry_counts,
            auth_exchanges=self.client.tokens.exchanges,
        )
