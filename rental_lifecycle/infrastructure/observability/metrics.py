"""Prometheus metrics for reminder dispatch and late-fee charging"""

from prometheus_client import Counter, Gauge, Histogram

# Reminder metrics
reminders_sent_counter = Counter(
    "rental_reminders_sent_total",
    "Reminders dispatched",
    ["job", "window"],
)

reminders_skipped_counter = Counter(
    "rental_reminders_skipped_total",
    "Reminder candidates skipped",
    ["job", "reason"],
)

reminders_failed_counter = Counter(
    "rental_reminders_failed_total",
    "Reminder dispatch or bookkeeping failures",
    ["job"],
)

# Charge metrics
charges_applied_counter = Counter(
    "rental_charges_applied_total",
    "Line items charged",
    ["scenario", "item"],  # item: late-fee | replacement
)

charge_failures_counter = Counter(
    "rental_charge_failures_total",
    "Failed charge applications",
    ["job"],
)

# Job health
job_run_duration_histogram = Histogram(
    "rental_job_run_duration_seconds",
    "Duration of one scheduler run",
    ["job"],
    buckets=[1, 5, 15, 30, 60, 120, 300, 600],
)

calendar_days_remaining_gauge = Gauge(
    "rental_calendar_days_remaining",
    "Days left before the holiday calendar runs out",
)

# Ops API
request_duration_histogram = Histogram(
    "rental_ops_request_duration_seconds",
    "Ops API request latency",
    ["method", "endpoint", "status"],
)


def record_reminder(job: str, outcome: str, window: str = "", reason: str = "") -> None:
    """Record a reminder outcome: sent | skipped | failed"""
    if outcome == "sent":
        reminders_sent_counter.labels(job=job, window=window).inc()
    elif outcome == "skipped":
        reminders_skipped_counter.labels(job=job, reason=reason or "unknown").inc()
    elif outcome == "failed":
        reminders_failed_counter.labels(job=job).inc()


def record_charge(scenario: str, items: list) -> None:
    for item in items:
        charges_applied_counter.labels(scenario=scenario, item=item).inc()
