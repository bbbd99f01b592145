"""Monitoring configuration for the study tracker."""
from prometheus_client import Counter, Gauge, start_http_server

# Error book metrics
words_added = Counter(
    "studybook_words_added_total",
    "Total number of words added to the error book",
    ["category"],
)

reviews_marked = Counter(
    "studybook_reviews_marked_total",
    "Total number of error book reviews recorded",
    ["level"],
)

imports = Counter(
    "studybook_imports_total",
    "Total number of import attempts",
    ["target", "result"],
)

# Study plan metrics
tasks_completed = Counter(
    "studybook_tasks_completed_total",
    "Total number of study tasks marked completed",
    ["kind"],
)

timer_seconds = Counter(
    "studybook_timer_seconds_total",
    "Total number of seconds accumulated by task timers",
    ["kind"],
)

active_timers = Gauge(
    "studybook_active_timers",
    "Number of task timers currently running",
)

# Storage metrics
storage_operations = Counter(
    "studybook_storage_operations_total",
    "Total number of key-value store operations",
    ["operation_type"],
)

# Error metrics
error_count = Counter(
    "studybook_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
