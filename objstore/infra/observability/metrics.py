from prometheus_client import Counter, Histogram, make_asgi_app

# Low-cardinality labels: route templates, never raw paths or object keys
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

STORAGE_OPERATIONS = Counter(
    "storage_operations_total",
    "Object store operations by outcome",
    ["operation", "outcome"],
)

STORAGE_LATENCY = Histogram(
    "storage_operation_duration_seconds",
    "Object store operation latency in seconds",
    ["operation"],
)

# ASGI app for the /metrics endpoint
metrics_app = make_asgi_app()
