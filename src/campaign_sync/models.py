"""Data models for campaign sync.

Campaign and CampaignPage validate API payloads (pydantic); Credential and
SyncOutcome are plain dataclasses owned by the components that produce them.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "Campaign",
    "CampaignPage",
    "Credential",
    "PaginationInfo",
    "SyncOutcome",
    "SyncState",
]


def _lenient_str(v: Any) -> str | None:
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return None


def _lenient_float(v: Any) -> float | None:
    if isinstance(v, bool):
        return None
    try:
        value = float(v)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _lenient_int(v: Any) -> int | None:
    value = _lenient_float(v)
    return int(value) if value is not None else None


class Campaign(BaseModel):
    """A campaign record as served by the Ad Platform API.

    ``id`` is the stable identity used as the upsert key and is the only
    field whose absence rejects a record. The other fields are overwritten
    on each sync; values of the wrong type are coerced where possible
    (numbers to strings, numeric strings to numbers, fractional counts
    truncated) and otherwise stored as null. Unknown fields are kept on the
    model but are not persisted.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    name: str | None = None
    status: str | None = None
    budget: float | None = None
    impressions: int | None = None
    clicks: int | None = None
    conversions: int | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric ids; the API is not consistent about id types."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("name", "status", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _lenient_str(v)

    @field_validator("budget", mode="before")
    @classmethod
    def coerce_budget(cls, v: Any) -> float | None:
        return _lenient_float(v)

    @field_validator("impressions", "clicks", "conversions", mode="before")
    @classmethod
    def coerce_counts(cls, v: Any) -> int | None:
        return _lenient_int(v)


class PaginationInfo(BaseModel):
    """Continuation block of a campaign page."""

    page: int | None = None
    limit: int | None = None
    has_more: bool = False


class CampaignPage(BaseModel):
    """One page of the campaign listing.

    ``data`` holds raw record dicts; records are validated one at a time by
    the paginator so a single bad record does not discard its page.
    """

    data: list[Any]
    pagination: PaginationInfo | None = None


@dataclass
class Credential:
    """Cached bearer token.

    Attributes:
        token: Opaque access token
        expires_at: Monotonic deadline, safety margin already subtracted
    """

    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class SyncState(str, Enum):
    """Lifecycle of a sync run."""

    IDLE = "idle"
    CONNECTING = "connecting"
    FETCHING = "fetching"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FATALLY_FAILED = "fatally_failed"


@dataclass
class SyncOutcome:
    """Result of one sync run, reported once at completion."""

    success_count: int = 0
    failure_count: int = 0
    total: int = 0
    failed_ids: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging and metrics."""
        return {
            "successful": self.success_count,
            "failed": self.failure_count,
            "total": self.total,
            "failed_ids": list(self.failed_ids),
            "duration_seconds": self.duration_seconds,
        }
