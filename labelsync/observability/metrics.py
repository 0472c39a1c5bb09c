"""Prometheus metrics for annotation commits and lineage resolution."""

from prometheus_client import Counter, Histogram

# Commit metrics
COMMIT_COUNT = Counter(
    "labelsync_commit_count_total",
    "Total number of batch commits attempted",
    labelnames=["status"],
)

COMMIT_FAILURES = Counter(
    "labelsync_commit_failures_total",
    "Batch commits aborted, by the step that failed",
    labelnames=["step"],
)

COMMIT_LATENCY = Histogram(
    "labelsync_commit_latency_seconds",
    "Batch commit latency in seconds",
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

FRAMES_UPSERTED = Counter(
    "labelsync_frames_upserted_total",
    "Frame records written by successful commit steps",
)

FRAMES_DELETED = Counter(
    "labelsync_frames_deleted_total",
    "Frame records removed by successful commit steps",
)

# Lineage metrics
LINEAGE_RESOLUTIONS = Counter(
    "labelsync_lineage_resolutions_total",
    "Canonical identity resolutions, by outcome",
    labelnames=["outcome"],
)

LINEAGE_SKIPPED_LINES = Counter(
    "labelsync_lineage_skipped_lines_total",
    "Lineage document lines skipped because they failed to parse",
)
