"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# HTTP metrics
http_requests = Counter(
    'http_requests_total',
    'HTTP requests by route template',
    ['method', 'route', 'status_code']
)

http_request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency until response headers',
    ['method', 'route'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Hold metrics
hold_attempts = Counter(
    'seat_hold_attempts_total',
    'Total seat hold attempts',
    ['result']  # acquired, already_held, error
)

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, rejected, commit_failure
)

booking_latency = Histogram(
    'booking_commit_latency_seconds',
    'Booking commit latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Payment metrics
payment_outcomes = Counter(
    'payment_outcomes_total',
    'Payment outcomes applied by the reconciler',
    ['result']  # paid, failed, already_handled, rejected
)

# Broadcast metrics
seat_events_published = Counter(
    'seat_events_published_total',
    'Seat status events published',
    ['status']  # held, booked, released
)

fanout_deliveries = Counter(
    'fanout_deliveries_total',
    'Seat status events relayed to viewers',
    ['result']  # delivered, dropped
)

fanout_connections = Gauge(
    'fanout_active_connections',
    'Number of open seat-map viewer connections'
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_hold_attempt(result: str):
    """Record hold attempt. Result: acquired, already_held, error"""
    hold_attempts.labels(result=result).inc()

def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, rejected, commit_failure"""
    booking_attempts.labels(status=status).inc()

def record_payment_outcome(result: str):
    payment_outcomes.labels(result=result).inc()

def record_seat_event(status: str):
    seat_events_published.labels(status=status).inc()

def record_fanout_delivery(delivered: bool):
    result = "delivered" if delivered else "dropped"
    fanout_deliveries.labels(result=result).inc()

def record_http_request(method: str, route: str, status_code: int, seconds: float):
    http_requests.labels(method=method, route=route, status_code=str(status_code)).inc()
    http_request_latency.labels(method=method, route=route).observe(seconds)
