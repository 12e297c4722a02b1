"""
Prometheus metrics endpoint.

Exposes delivery pipeline metrics for monitoring.
"""
from fastapi import APIRouter, Response
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter()

# ============================================
# HTTP Request Metrics
# ============================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# ============================================
# Send Job Metrics
# ============================================

jobs_queued = Counter(
    'send_jobs_queued_total',
    'Total send jobs queued'
)

jobs_completed = Counter(
    'send_jobs_completed_total',
    'Total send jobs completed successfully'
)

jobs_failed = Counter(
    'send_jobs_failed_total',
    'Total send jobs permanently failed'
)

jobs_retry_total = Counter(
    'send_jobs_retry_total',
    'Total send job retry attempts scheduled'
)

job_queue_depth = Gauge(
    'send_job_queue_count',
    'Current number of send jobs per state',
    ['state']
)

# ============================================
# Rate Limiting Metrics
# ============================================

rate_limit_exceeded = Counter(
    'rate_limit_exceeded_total',
    'Total requests blocked by rate limiting'
)

# ============================================
# Webhook Metrics
# ============================================

webhooks_sent = Counter(
    'webhooks_sent_total',
    'Total webhook attempts',
    ['event_kind', 'status']
)

webhooks_failed = Counter(
    'webhooks_failed_total',
    'Total webhooks permanently failed',
    ['event_kind']
)


# ============================================
# Metrics Helper Functions
# ============================================

def track_request(method: str, endpoint: str, status: int, duration_seconds: float):
    """
    Record HTTP request metrics.

    Call this after each request.
    """
    http_requests_total.labels(
        method=method,
        endpoint=endpoint,
        status=status
    ).inc()

    http_request_duration.labels(
        method=method,
        endpoint=endpoint
    ).observe(duration_seconds)


def track_job_queued():
    """Record a job being queued."""
    jobs_queued.inc()


def track_job_completed():
    """Record a job completing successfully."""
    jobs_completed.inc()


def track_job_failed():
    """Record a job failing permanently."""
    jobs_failed.inc()


def track_job_retry():
    """Record a job retry being scheduled."""
    jobs_retry_total.inc()


def update_queue_depth(counts: dict[str, int]):
    """Update per-state job counts."""
    for state, count in counts.items():
        job_queue_depth.labels(state=state).set(count)


def track_rate_limit_exceeded():
    """Record a rate limit block."""
    rate_limit_exceeded.inc()


def track_webhook_sent(event_kind: str, status: str):
    """Record a webhook attempt outcome (delivered, retrying, failed)."""
    webhooks_sent.labels(event_kind=event_kind, status=status).inc()


def track_webhook_failed(event_kind: str):
    """Record a webhook that exhausted its attempts."""
    webhooks_failed.labels(event_kind=event_kind).inc()


# ============================================
# Prometheus Endpoint
# ============================================

@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Returns all registered metrics in Prometheus format.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
