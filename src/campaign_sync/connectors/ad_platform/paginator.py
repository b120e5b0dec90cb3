"""Page-number pagination over the campaign listing.

Response shape:
    {"data": [...], "pagination": {"page": 1, "limit": 10, "has_more": true}}

A page without a ``data`` list ends pagination with a warning rather than an
error. This matches the API's historical behavior but can hide a real
failure behind a short result; the ``campaign_page_malformed`` warning is
the signal to watch for.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError

from ...models import Campaign, CampaignPage
from .executor import RequestExecutor

logger = logging.getLogger("campaign_sync.ad_platform.paginator")

__all__ = ["CampaignPaginator"]


class CampaignPaginator:
    """Fetches every campaign page, in order, exactly once.

    Example:
        >>> paginator = CampaignPaginator(executor, "/api/campaigns", limit=10)
        >>> campaigns = await paginator.fetch_all()
    """

    def __init__(self, executor: RequestExecutor, path: str, limit: int = 10) -> None:
        self._executor = executor
        self.path = path
        self.limit = limit
        self.pages_fetched = 0

    async def iter_pages(self) -> AsyncIterator[list[Campaign]]:
        """Yield the validated campaigns of each page, starting at page 1.

        Errors from the executor propagate and end iteration.
        """
        page_number = 1
        while True:
            logger.info("fetching_campaign_page", extra={"page": page_number})
            payload = await self._executor.call(
                "GET",
                self.path,
                params={"page": page_number, "limit": self.limit},
            )
            self.pages_fetched += 1

            page = self._parse_page(payload, page_number)
            if page is None:
                return

            yield self._parse_records(page.data, page_number)

            if page.pagination is None or not page.pagination.has_more:
                return
            page_number += 1

    async def fetch_all(self) -> list[Campaign]:
        """Fetch all pages and return campaigns in page-then-record order."""
        campaigns: list[Campaign] = []
        async for records in self.iter_pages():
            campaigns.extend(records)

        logger.info(
            "campaigns_fetched",
            extra={"pages": self.pages_fetched, "total": len(campaigns)},
        )
        return campaigns

    @staticmethod
    def _parse_page(payload: Any, page_number: int) -> CampaignPage | None:
        try:
            return CampaignPage.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "campaign_page_malformed",
                extra={
                    "page": page_number,
                    "error_count": e.error_count(),
                    "payload_type": type(payload).__name__,
                },
            )
            return None

    @staticmethod
    def _parse_records(raw: list[Any], page_number: int) -> list[Campaign]:
        records = []
        for index, item in enumerate(raw):
            try:
                records.append(Campaign.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "campaign_record_invalid",
                    extra={"page": page_number, "index": index, "error_count": e.error_count()},
                )
        return records
