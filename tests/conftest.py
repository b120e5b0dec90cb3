"""Shared pytest fixtures for Campaign Sync tests.

Fixture Organization:
    - Time fixtures: FakeClock drives the rate limiter, token expiry and backoff
      sleeps without real waiting
    - API fixtures: MockAdPlatform served through httpx.MockTransport, and a
      client factory wired to it
    - Isolation fixtures: logging and configuration reset per test
    - Integration gating: --run-integration and service port checks
"""

import logging
import os
import socket

import pytest

from campaign_sync.config import reset_config
from campaign_sync.connectors.ad_platform.client import AdPlatformClient
from campaign_sync.connectors.ad_platform.mock_api import MockAdPlatform

# Environment variables read by SyncConfig; cleared so the host env cannot leak in
CONFIG_ENV_VARS = [
    "AD_PLATFORM_API_URL",
    "API_BASE_URL",
    "API_PREFIX",
    "API_USERNAME",
    "API_PASSWORD",
    "MIN_REQUEST_INTERVAL_MS",
    "REQUEST_TIMEOUT_MS",
    "MAX_RETRIES",
    "BACKOFF_BASE_MS",
    "RATE_LIMIT_BACKOFF_BASE_MS",
    "MAX_BACKOFF_MS",
    "BACKOFF_JITTER",
    "TOKEN_DEFAULT_LIFETIME_S",
    "TOKEN_SAFETY_MARGIN_S",
    "PAGE_LIMIT",
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
    "DB_POOL_MAX_SIZE",
    "DB_CONNECT_TIMEOUT_S",
    "USE_MOCK_API",
    "USE_MOCK_DB",
    "MOCK_CAMPAIGN_COUNT",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "PUSHGATEWAY_ENABLED",
    "PUSHGATEWAY_URL",
]


# =============================================================================
# Pytest CLI Options
# =============================================================================


def pytest_addoption(parser):
    """Add custom command line options for test selection."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests requiring external services (Postgres)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs external services")
    config.addinivalue_line("markers", "requires_postgres: needs Postgres on DB_PORT")


def pytest_collection_modifyitems(session, config, items):
    """Skip integration tests unless --run-integration is provided."""
    if config.getoption("--run-integration", default=False):
        return

    skip_integration = pytest.mark.skip(
        reason="Need --run-integration option to run integration tests"
    )
    for item in items:
        if "integration" in item.keywords or "/integration/" in str(item.fspath):
            item.add_marker(skip_integration)


def _is_port_open(port: int, host: str = "localhost") -> bool:
    """Check if a port is accepting connections."""
    try:
        with socket.create_connection((host, port), timeout=1):
            return True
    except (TimeoutError, ConnectionRefusedError, OSError):
        return False


@pytest.fixture(autouse=True)
def skip_without_services(request):
    """Auto-skip tests marked requires_postgres when Postgres is down."""
    if request.node.get_closest_marker("requires_postgres"):
        host = os.getenv("DB_HOST", "localhost")
        port = int(os.getenv("DB_PORT", "5432"))
        if not _is_port_open(port, host):
            pytest.skip(f"Postgres not available on {host}:{port}")


# =============================================================================
# Isolation Fixtures (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset campaign_sync loggers so caplog captures records.

    configure_logging() attaches a handler and disables propagation, which
    hides records from caplog. Undo that before and after each test.
    """

    def _reset():
        for name in list(logging.Logger.manager.loggerDict.keys()):
            if name.startswith("campaign_sync"):
                child = logging.getLogger(name)
                child.handlers.clear()
                child.propagate = True
                child.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove config env vars and run from an empty directory (no .env)."""
    for key in CONFIG_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield monkeypatch
    reset_config()


# =============================================================================
# Time Fixtures
# =============================================================================


class FakeClock:
    """Monotonic clock whose sleep advances time instantly.

    Attributes:
        now: Current fake time in seconds
        sleeps: Every duration passed to sleep(), in order
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    """Fresh FakeClock per test."""
    return FakeClock()


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def mock_api(clock):
    """MockAdPlatform sharing the test's FakeClock for token expiry."""
    return MockAdPlatform(campaign_count=25, clock=clock)


@pytest.fixture
def make_client(clock):
    """Factory for AdPlatformClient instances wired to a MockAdPlatform.

    Defaults: no rate-limit interval, 1s/2s backoff bases, page size 10.
    Override any AdPlatformClient keyword argument.
    """
    def _make(api: MockAdPlatform, **kwargs) -> AdPlatformClient:
        options = {
            "min_request_interval": 0.0,
            "timeout": 5.0,
            "page_limit": 10,
            "transport": api.transport(),
            "clock": clock,
            "sleep": clock.sleep,
        }
        options.update(kwargs)
        return AdPlatformClient("http://adplatform.test", api.username, api.password, **options)

    return _make


@pytest.fixture
def campaign_payloads():
    """Three raw campaign dicts as the API serves them."""
    return [
        {"id": "c1", "name": "Spring Sale", "status": "active", "budget": 5000.0,
         "impressions": 12000, "clicks": 340, "conversions": 21},
        {"id": "c2", "name": "Summer Promo", "status": "paused", "budget": 2500.0,
         "impressions": 800, "clicks": 12, "conversions": 0},
        {"id": "c3", "name": "Brand Awareness", "status": "completed", "budget": 10000.0,
         "impressions": 250000, "clicks": 4100, "conversions": 95},
    ]
