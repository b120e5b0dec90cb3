"""Version information for Campaign Sync.

Single source of truth for version number.
Follows PEP 440 and semantic versioning principles.
"""

__version__ = "1.1.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.1.0 - Mock API transport, pushgateway metrics, per-class retry counters
# 1.0.0 - Initial release (paginated fetch, token refresh, Postgres upsert)
