"""
Prometheus metrics for listing lifecycle, sweeps and archival.

The API process exposes them on /metrics. Sweep jobs are short-lived, so
they push the same registry to a Pushgateway when PUSHGATEWAY_URL is set
(see ``carmarket.sweeps._runner``).

Example:
    >>> from carmarket.metrics import sweep_duration, sweep_runs
    >>> with sweep_duration.labels(job="expire_listings").time():
    ...     expired = expire_listings(conn, now)
    >>> sweep_runs.labels(job="expire_listings", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Sweep Metrics
# =============================================================================

sweep_runs = Counter(
    "carmarket_sweep_runs_total",
    "Total number of sweep runs by outcome",
    ["job", "status"],
)
"""
Counter for sweep runs.

Labels:
    job: Sweep name (expire_listings, sold_auto_delete, boost_expiry, subscription_expiry)
    status: success, partial (some items failed) or failure (systemic)
"""

sweep_duration = Histogram(
    "carmarket_sweep_duration_seconds",
    "Duration of sweep runs in seconds",
    ["job"],
    buckets=(0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0, float("inf")),
)

sweep_items = Counter(
    "carmarket_sweep_items_total",
    "Items handled by sweeps, by outcome",
    ["job", "outcome"],
)
"""
Counter for items touched by sweeps.

Labels:
    job: Sweep name
    outcome: processed, failed or skipped (lost a race to another writer)
"""

# =============================================================================
# Lifecycle Metrics
# =============================================================================

listing_transitions = Counter(
    "carmarket_listing_transitions_total",
    "Listing state transitions applied",
    ["event"],
)
"""
Counter for applied transitions.

Labels:
    event: create, mark_sold, mark_available, expire, relist, boost, delete, auto_delete
"""

archival_images = Counter(
    "carmarket_archival_images_total",
    "Image deletions attempted during archival",
    ["outcome"],
)
"""
Counter for object-store cleanup during archival.

Labels:
    outcome: deleted, failed or retained (still used by another live listing)
"""

duplicate_rejections = Counter(
    "carmarket_duplicate_rejections_total",
    "Listing creates rejected as recent duplicates",
)

# =============================================================================
# Search Metrics
# =============================================================================

search_requests = Counter(
    "carmarket_search_requests_total",
    "Listing search requests by outcome",
    ["status"],
)

search_latency = Histogram(
    "carmarket_search_latency_seconds",
    "Listing search latency in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, float("inf")),
)
