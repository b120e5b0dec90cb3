"""Prometheus metrics for campaign sync runs.

A sync is a short-lived batch process, so metrics are collected into a
per-run CollectorRegistry and pushed to a Pushgateway at the end of the run
instead of being scraped.

Naming: campaign_sync_{metric}_{unit}, snake_case.
"""

import logging
from collections.abc import Mapping

from prometheus_client import CollectorRegistry, Counter, Gauge
from prometheus_client.exposition import pushadd_to_gateway

from .models import SyncOutcome

logger = logging.getLogger("campaign_sync.metrics")

__all__ = ["JOB_NAME", "build_registry", "push_sync_metrics"]

JOB_NAME = "campaign_sync"


def build_registry(
    outcome: SyncOutcome,
    run_status: str,
    retry_counts: Mapping[str, int] | None = None,
    auth_exchanges: int = 0,
) -> CollectorRegistry:
    """Collect the metrics of one run into a fresh registry.

    Args:
        outcome: Counts of the run (zeros for a run that failed early)
        run_status: "completed" or "failed"
        retry_counts: API retries keyed by reason
        auth_exchanges: Token exchanges performed

    Returns:
        CollectorRegistry ready to push
    """
    registry = CollectorRegistry()

    records_total = Counter(
        "campaign_sync_records_total",
        "Campaign records processed",
        ["status"],
        registry=registry,
    )
    retries_total = Counter(
        "campaign_sync_api_retries_total",
        "API request retries",
        ["reason"],
        registry=registry,
    )
    auth_total = Counter(
        "campaign_sync_auth_exchanges_total",
        "Token exchanges performed",
        registry=registry,
    )
    duration = Gauge(
        "campaign_sync_duration_seconds",
        "Sync run duration",
        registry=registry,
    )
    last_run = Gauge(
        "campaign_sync_last_run_success",
        "1 if the last run completed, 0 if it failed",
        registry=registry,
    )

    records_total.labels(status="synced").inc(outcome.success_count)
    records_total.labels(status="failed").inc(outcome.failure_count)
    for reason, count in (retry_counts or {}).items():
        retries_total.labels(reason=reason).inc(count)
    auth_total.inc(auth_exchanges)
    duration.set(outcome.duration_seconds)
    last_run.set(1 if run_status == "completed" else 0)

    return registry


def push_sync_metrics(
    gateway_url: str,
    outcome: SyncOutcome,
    run_status: str,
    retry_counts: Mapping[str, int] | None = None,
    auth_exchanges: int = 0,
) -> None:
    """Push run metrics to the Pushgateway.

    Failures are logged and swallowed; metrics never fail a sync.
    """
    try:
        registry = build_registry(outcome, run_status, retry_counts, auth_exchanges)
        pushadd_to_gateway(gateway_url, job=JOB_NAME, registry=registry)
    except Exception as e:
        logger.warning("metrics_push_failed", extra={"error": str(e)})
