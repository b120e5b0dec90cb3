"""Unit tests for CampaignPaginator.

Tests:
- Every page requested once, in order, starting at page 1
- Records returned in page-then-record order with no duplicates
- Termination on has_more=false or missing pagination block
- Malformed page ends pagination with a warning
- Invalid records skipped individually
- Executor errors propagate
"""

import logging

import httpx
import pytest

from campaign_sync.connectors.ad_platform.errors import ServerError
from campaign_sync.connectors.ad_platform.mock_api import MockAdPlatform

CAMPAIGNS = "/api/campaigns"


def _scripted(api, pages):
    """Transport serving ``pages`` (list of payloads) for successive listing calls."""
    served = iter(pages)
    seen_pages = []

    def handler(request):
        if request.url.path == CAMPAIGNS:
            seen_pages.append(int(request.url.params["page"]))
            return httpx.Response(200, json=next(served))
        return api.handle(request)

    return httpx.MockTransport(handler), seen_pages


class TestFetchAll:
    """Test full traversal against the mock API."""

    @pytest.mark.asyncio
    async def test_all_records_in_order(self, mock_api, make_client):
        client = make_client(mock_api, page_limit=10)

        campaigns = await client.fetch_all_campaigns()

        assert [c.id for c in campaigns] == [c["id"] for c in mock_api.campaigns]
        assert len({c.id for c in campaigns}) == 25

    @pytest.mark.asyncio
    async def test_each_page_requested_once(self, mock_api, make_client):
        client = make_client(mock_api, page_limit=10)
        paginator = client.paginator()

        await paginator.fetch_all()

        assert mock_api.requests.count(("GET", CAMPAIGNS)) == 3
        assert paginator.pages_fetched == 3

    @pytest.mark.asyncio
    async def test_exact_multiple_of_page_size(self, clock, make_client):
        api = MockAdPlatform(campaign_count=20, clock=clock)
        client = make_client(api, page_limit=10)

        campaigns = await client.fetch_all_campaigns()

        assert len(campaigns) == 20
        assert api.requests.count(("GET", CAMPAIGNS)) == 2

    @pytest.mark.asyncio
    async def test_empty_listing(self, clock, make_client):
        api = MockAdPlatform(campaign_count=0, clock=clock)
        client = make_client(api)

        assert await client.fetch_all_campaigns() == []
        assert api.requests.count(("GET", CAMPAIGNS)) == 1

    @pytest.mark.asyncio
    async def test_page_retry_not_duplicated(self, mock_api, make_client):
        mock_api.queue_fault(CAMPAIGNS, 503, 429)
        client = make_client(mock_api, page_limit=10)

        campaigns = await client.fetch_all_campaigns()

        assert len(campaigns) == 25
        assert len({c.id for c in campaigns}) == 25

    @pytest.mark.asyncio
    async def test_logs_summary(self, mock_api, make_client, caplog):
        caplog.set_level(logging.INFO, logger="campaign_sync")
        client = make_client(mock_api, page_limit=10)

        await client.fetch_all_campaigns()

        summary = [r for r in caplog.records if r.getMessage() == "campaigns_fetched"]
        assert len(summary) == 1
        assert summary[0].pages == 3
        assert summary[0].total == 25


class TestTermination:
    """Test stop conditions on scripted payloads."""

    @pytest.mark.asyncio
    async def test_missing_pagination_stops(self, mock_api, make_client, campaign_payloads):
        transport, seen = _scripted(mock_api, [{"data": campaign_payloads}])
        client = make_client(mock_api, transport=transport)

        campaigns = await client.fetch_all_campaigns()

        assert [c.id for c in campaigns] == ["c1", "c2", "c3"]
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_follows_has_more(self, mock_api, make_client, campaign_payloads):
        transport, seen = _scripted(
            mock_api,
            [
                {"data": campaign_payloads[:2], "pagination": {"page": 1, "has_more": True}},
                {"data": campaign_payloads[2:], "pagination": {"page": 2, "has_more": False}},
            ],
        )
        client = make_client(mock_api, transport=transport)

        campaigns = await client.fetch_all_campaigns()

        assert [c.id for c in campaigns] == ["c1", "c2", "c3"]
        assert seen == [1, 2]

    @pytest.mark.asyncio
    async def test_malformed_page_stops_with_warning(
        self, mock_api, make_client, campaign_payloads, caplog
    ):
        caplog.set_level(logging.WARNING, logger="campaign_sync")
        transport, seen = _scripted(
            mock_api,
            [
                {"data": campaign_payloads[:1], "pagination": {"has_more": True}},
                {"items": campaign_payloads[1:], "pagination": {"has_more": True}},
            ],
        )
        client = make_client(mock_api, transport=transport)

        campaigns = await client.fetch_all_campaigns()

        assert [c.id for c in campaigns] == ["c1"]
        assert seen == [1, 2]
        warnings = [r for r in caplog.records if r.getMessage() == "campaign_page_malformed"]
        assert len(warnings) == 1
        assert warnings[0].page == 2

    @pytest.mark.asyncio
    async def test_non_object_payload_stops(self, mock_api, make_client):
        transport, _ = _scripted(mock_api, [["not", "an", "object"]])
        client = make_client(mock_api, transport=transport)

        assert await client.fetch_all_campaigns() == []

    @pytest.mark.asyncio
    async def test_invalid_record_skipped(
        self, mock_api, make_client, campaign_payloads, caplog
    ):
        caplog.set_level(logging.WARNING, logger="campaign_sync")
        records = [campaign_payloads[0], {"name": "no id"}, "garbage", campaign_payloads[1]]
        transport, _ = _scripted(mock_api, [{"data": records}])
        client = make_client(mock_api, transport=transport)

        campaigns = await client.fetch_all_campaigns()

        assert [c.id for c in campaigns] == ["c1", "c2"]
        invalid = [r for r in caplog.records if r.getMessage() == "campaign_record_invalid"]
        assert [r.index for r in invalid] == [1, 2]

    @pytest.mark.asyncio
    async def test_wrong_typed_fields_keep_record(self, mock_api, make_client, caplog):
        caplog.set_level(logging.WARNING, logger="campaign_sync")
        records = [
            {"id": "c1", "name": "ok"},
            {"id": "c2", "name": 42},
            {"id": "c3", "clicks": 1.5},
        ]
        transport, _ = _scripted(mock_api, [{"data": records}])
        client = make_client(mock_api, transport=transport)

        campaigns = await client.fetch_all_campaigns()

        assert [c.id for c in campaigns] == ["c1", "c2", "c3"]
        assert campaigns[1].name == "42"
        assert campaigns[2].clicks == 1
        assert not [r for r in caplog.records if r.getMessage() == "campaign_record_invalid"]

    @pytest.mark.asyncio
    async def test_numeric_ids_coerced(self, mock_api, make_client):
        transport, _ = _scripted(mock_api, [{"data": [{"id": 7, "name": "Seven"}]}])
        client = make_client(mock_api, transport=transport)

        campaigns = await client.fetch_all_campaigns()

        assert campaigns[0].id == "7"


class TestErrors:
    """Executor failures end pagination."""

    @pytest.mark.asyncio
    async def test_error_on_later_page_propagates(self, mock_api, make_client):
        client = make_client(mock_api, page_limit=10, max_retries=1)
        paginator = client.paginator()
        pages = []

        with pytest.raises(ServerError):
            async for records in paginator.iter_pages():
                pages.append(records)
                if len(pages) == 1:
                    mock_api.queue_fault(CAMPAIGNS, 500, 500)

        assert len(pages) == 1
