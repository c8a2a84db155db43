from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

SUBMISSIONS_TOTAL = Counter(
    "nimbus_pipeline_submissions_total",
    "Total processing jobs submitted grouped by mode.",
    labelnames=("mode",),
)

OUTCOMES_TOTAL = Counter(
    "nimbus_pipeline_outcomes_total",
    "Total applied submission outcomes grouped by mode and outcome kind.",
    labelnames=("mode", "outcome"),
)

REQUEST_DURATION_SECONDS = Histogram(
    "nimbus_pipeline_request_duration_seconds",
    "Processing request duration in seconds.",
    labelnames=("mode",),
    buckets=(0.1, 0.5, 1.0, 3.0, 10.0, 30.0, 60.0, 120.0),
)

LIVE_HANDLES = Gauge(
    "nimbus_pipeline_live_handles",
    "Image handles currently held by the client.",
)


def _mode_label(mode: object) -> str:
    value = getattr(mode, "value", mode)
    return str(value or "unknown")


def record_submission(mode: object) -> None:
    SUBMISSIONS_TOTAL.labels(mode=_mode_label(mode)).inc()


def record_outcome(mode: object, outcome_kind: str, duration_seconds: float | None = None) -> None:
    label = _mode_label(mode)
    OUTCOMES_TOTAL.labels(mode=label, outcome=outcome_kind).inc()
    if duration_seconds is not None:
        REQUEST_DURATION_SECONDS.labels(mode=label).observe(max(0.0, duration_seconds))


def set_live_handles(count: int) -> None:
    LIVE_HANDLES.set(count)
