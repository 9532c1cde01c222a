"""
Prometheus metrics for the leaderboard API.

Metrics exposed:
- AI extraction attempt/success/failure counters
- Extraction latency histogram
- Team stats recalculation counter (by trigger)
- Screenshot batch item outcomes
"""
from prometheus_client import Counter, Histogram

# AI extraction metrics
extraction_attempts_total = Counter(
    "screenshot_extraction_attempts_total",
    "Total HTTP attempts made against the AI gateway"
)

extraction_success_total = Counter(
    "screenshot_extraction_success_total",
    "Total screenshots successfully extracted"
)

extraction_failures_total = Counter(
    "screenshot_extraction_failures_total",
    "Total screenshot extractions that failed after retries",
    ["error_type"]
)

extraction_duration_seconds = Histogram(
    "screenshot_extraction_duration_seconds",
    "Wall time of one extraction call including retries",
    buckets=(0.5, 1, 2, 5, 10, 20, 40, 80)
)

# Aggregation metrics
team_recalculations_total = Counter(
    "team_stats_recalculations_total",
    "Total team aggregate recalculations",
    ["trigger"]
)

team_stats_overrides_total = Counter(
    "team_stats_overrides_total",
    "Admin resets that overwrote team aggregates directly"
)

# Batch submission metrics
batch_items_total = Counter(
    "screenshot_batch_items_total",
    "Screenshot batch items by outcome",
    ["outcome"]
)


def record_extraction_failure(error_type: str) -> None:
    """Increment the failure counter for one error classification."""
    extraction_failures_total.labels(error_type=error_type).inc()


def record_recalculation(trigger: str) -> None:
    """Increment the recalculation counter for one trigger (insert, update, ...)."""
    team_recalculations_total.labels(trigger=trigger).inc()
