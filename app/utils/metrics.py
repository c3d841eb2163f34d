"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
purchases_initiated_total = Counter(
    "purchases_initiated_total",
    "Purchase initiation attempts",
    ["result"],  # token, conflict, invalid, rate_limited, gateway_error, storage_error
)

payment_notifications_total = Counter(
    "payment_notifications_total",
    "Payment gateway notifications processed",
    ["outcome"],  # applied, duplicate, pending, rejected, unknown_order
)

purchases_reconciled_total = Counter(
    "purchases_reconciled_total",
    "Stale PENDING purchases resolved by the reconciliation task",
    ["status"],
)

gateway_requests_total = Counter(
    "gateway_requests_total",
    "Total payment gateway API requests",
    ["method", "status"],
)

catalog_requests_total = Counter(
    "catalog_requests_total",
    "Total story catalog API requests",
    ["method", "status"],
)

# Histograms
gateway_request_duration_seconds = Histogram(
    "gateway_request_duration_seconds",
    "Payment gateway API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 20],
)

catalog_request_duration_seconds = Histogram(
    "catalog_request_duration_seconds",
    "Story catalog API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
