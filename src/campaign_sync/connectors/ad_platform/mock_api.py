"""In-process fake of the Ad Platform API.

Served through ``httpx.MockTransport`` so the real client, executor and
paginator run unchanged against it. Used for USE_MOCK_API runs and for
wire-level tests.

Supports:
- POST /auth/token (Basic credentials, expiring bearer tokens)
- GET {prefix}/campaigns?page=N&limit=L
- POST {prefix}/campaigns/{id}/sync
- Scripted faults: queued status codes returned for a path before the
  normal response
"""

import base64
import logging
import re
import secrets
import time
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Any

import httpx

logger = logging.getLogger("campaign_sync.ad_platform.mock_api")

__all__ = ["MockAdPlatform", "generate_campaigns"]

_STATUSES = ("active", "paused", "completed")


def generate_campaigns(count: int) -> list[dict[str, Any]]:
    """Build deterministic campaign records."""
    return [
        {
            "id": f"camp_{i:03d}",
            "name": f"Campaign {i}",
            "status": _STATUSES[i % len(_STATUSES)],
            "budget": float(1000 + i * 250),
            "impressions": i * 1000,
            "clicks": i * 37,
            "conversions": i * 3,
        }
        for i in range(1, count + 1)
    ]


class MockAdPlatform:
    """Fake Ad Platform API.

    Attributes:
        campaigns: Records served by the listing endpoint
        auth_requests: Number of token exchanges received
        requests: (method, path) of every request received, in order
        synced_ids: Campaign ids whose sync endpoint was called
    """

    def __init__(
        self,
        username: str = "mock@example.com",
        password: str = "mock-password",
        campaigns: list[dict[str, Any]] | None = None,
        campaign_count: int = 25,
        token_lifetime: int | None = 3600,
        api_prefix: str = "/api",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.username = username
        self.password = password
        self.campaigns = campaigns if campaigns is not None else generate_campaigns(campaign_count)
        self.token_lifetime = token_lifetime
        self.api_prefix = api_prefix
        self._clock = clock

        self._tokens: dict[str, float] = {}
        self._faults: dict[str, deque[tuple[int, dict[str, str]]]] = defaultdict(deque)

        self.auth_requests = 0
        self.requests: list[tuple[str, str]] = []
        self.synced_ids: list[str] = []

        self._sync_pattern = re.compile(
            rf"^{re.escape(api_prefix)}/campaigns/(?P<campaign_id>[^/]+)/sync$"
        )

    def transport(self) -> httpx.MockTransport:
        """Transport to plug into an httpx.AsyncClient."""
        return httpx.MockTransport(self.handle)

    def queue_fault(self, path: str, *statuses: int, retry_after: str | None = None) -> None:
        """Queue status codes to return for ``path`` before normal handling."""
        headers = {"Retry-After": retry_after} if retry_after is not None else {}
        for status in statuses:
            self._faults[path].append((status, headers))

    def revoke_tokens(self) -> None:
        """Invalidate every issued token (next call gets 401)."""
        self._tokens.clear()

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if self._faults[path]:
            status, headers = self._faults[path].popleft()
            return httpx.Response(status, headers=headers, json={"message": "injected fault"})

        if path == "/auth/token" and request.method == "POST":
            return self._handle_auth(request)

        if not self._is_authorized(request):
            return httpx.Response(401, json={"message": "Invalid or expired token"})

        if path == f"{self.api_prefix}/campaigns" and request.method == "GET":
            return self._handle_list(request)

        match = self._sync_pattern.match(path)
        if match and request.method == "POST":
            return self._handle_sync(match.group("campaign_id"))

        return httpx.Response(404, json={"message": "Not found"})

    def _handle_auth(self, request: httpx.Request) -> httpx.Response:
        self.auth_requests += 1
        expected = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        if request.headers.get("Authorization") != f"Basic {expected}":
            return httpx.Response(401, json={"message": "Invalid credentials"})

        token = secrets.token_hex(16)
        lifetime = self.token_lifetime if self.token_lifetime is not None else 3600
        self._tokens[token] = self._clock() + lifetime

        body: dict[str, Any] = {"access_token": token}
        if self.token_lifetime is not None:
            body["expires_in"] = self.token_lifetime
        return httpx.Response(200, json=body)

    def _is_authorized(self, request: httpx.Request) -> bool:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return False
        expires_at = self._tokens.get(header[len("Bearer "):])
        return expires_at is not None and self._clock() < expires_at

    def _handle_list(self, request: httpx.Request) -> httpx.Response:
        try:
            page = int(request.url.params.get("page", "1"))
            limit = int(request.url.params.get("limit", "10"))
        except ValueError:
            return httpx.Response(400, json={"message": "page and limit must be integers"})
        if page < 1 or limit < 1:
            return httpx.Response(400, json={"message": "page and limit must be positive"})

        start = (page - 1) * limit
        data = self.campaigns[start:start + limit]
        return httpx.Response(
            200,
            json={
                "data": data,
                "pagination": {
                    "page": page,
                    "limit": limit,
                    "has_more": start + limit < len(self.campaigns),
                },
            },
        )

    def _handle_sync(self, campaign_id: str) -> httpx.Response:
        if not any(c.get("id") == campaign_id for c in self.campaigns):
            return httpx.Response(404, json={"message": f"Campaign {campaign_id} not found"})
        self.synced_ids.append(campaign_id)
        logger.debug("mock_campaign_synced", extra={"campaign_id": campaign_id})
        return httpx.Response(200, json={"success": True, "campaign_id": campaign_id})
