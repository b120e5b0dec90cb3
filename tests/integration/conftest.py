"""Integration test fixtures for Campaign Sync.

Integration tests talk to a real Postgres. Connection settings come from the
usual DB_* environment variables (defaults: postgres@localhost:5432/mixoads).
"""

import pytest


def pytest_collection_modifyitems(items):
    """Auto-apply @pytest.mark.integration to all tests in this directory.

    Ensures `pytest -m 'not integration'` excludes every integration test,
    even when a test lacks an explicit marker.
    """
    for item in items:
        if "/tests/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
