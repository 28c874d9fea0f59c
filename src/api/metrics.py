import time

from prometheus_client import Counter, Histogram, Gauge, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # counters register under their base name without the _total suffix
        existing = REGISTRY._names_to_collectors
        return existing.get(name) or existing[name.removesuffix("_total")]


REQUESTS_TOTAL = get_or_create_metric(
    "planner_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "planner_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

CANDIDATES_GENERATED_TOTAL = get_or_create_metric(
    "planner_candidates_generated_total",
    "Schedule candidates generated",
    Counter,
    labelnames=["strategy"],
)

TASKS_SCHEDULED_TOTAL = get_or_create_metric(
    "planner_tasks_scheduled_total", "Total tasks scheduled", Counter
)

NOTIFICATIONS_DELIVERED_TOTAL = get_or_create_metric(
    "planner_notifications_delivered_total",
    "Notifications delivered",
    Counter,
    labelnames=["kind"],
)

TASKS_MIGRATED_TOTAL = get_or_create_metric(
    "planner_tasks_migrated_total", "Unfinished tasks carried over to tomorrow", Counter
)

PENDING_NOTIFICATIONS = get_or_create_metric(
    "planner_pending_notifications", "Notifications waiting to be delivered", Gauge
)


def record_request(endpoint: str, status: str, started: float) -> None:
    REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - started)
