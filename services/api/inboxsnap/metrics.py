"""Prometheus metric definitions.

Single source of truth for all custom metrics. Import from here in API and Celery code.
"""

from prometheus_client import Counter, Histogram

# --- Celery task metrics ---

celery_task_total = Counter(
    "inboxsnap_celery_task_total",
    "Total Celery tasks executed",
    ["task_name", "status"],
)

celery_task_duration_seconds = Histogram(
    "inboxsnap_celery_task_duration_seconds",
    "Celery task execution duration in seconds",
    ["task_name"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

# --- Business metrics ---

snapshots_created_total = Counter(
    "inboxsnap_snapshots_created_total",
    "Snapshots created with at least one item",
)

snapshots_failed_total = Counter(
    "inboxsnap_snapshots_failed_total",
    "Snapshot attempts that produced no snapshot, by reason",
    ["reason"],
)

emails_summarized_total = Counter(
    "inboxsnap_emails_summarized_total",
    "Emails summarized into snapshot items",
)

summaries_skipped_total = Counter(
    "inboxsnap_summaries_skipped_total",
    "Messages skipped because summarization failed, timed out or was empty",
)

quota_rejections_total = Counter(
    "inboxsnap_quota_rejections_total",
    "Snapshot attempts refused by the quota state machine",
    ["reason"],
)

snapshots_swept_total = Counter(
    "inboxsnap_snapshots_swept_total",
    "Expired snapshots deleted by the retention sweep",
)

snapshot_items_swept_total = Counter(
    "inboxsnap_snapshot_items_swept_total",
    "Snapshot items deleted by the retention sweep",
)
