"""
Prometheus metrics for the schedule API and the schedule engine use cases.
"""
import logging
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0

REQUEST_COUNT = Counter(
    'schedule_api_requests_total',
    'Total number of requests',
    ['method', 'endpoint', 'status']
)

REQUEST_DURATION = Histogram(
    'schedule_api_request_duration_seconds',
    'Request duration in seconds',
    ['method', 'endpoint']
)

ACTIVE_REQUESTS = Gauge(
    'schedule_api_active_requests',
    'Number of requests currently being processed'
)

ITEM_MUTATIONS = Counter(
    'schedule_item_mutations_total',
    'Schedule item add/remove/replace attempts',
    ['operation', 'result']  # result: ok, invalid, conflict, not_found
)

MATERIALIZATION_COUNT = Counter(
    'schedule_materialization_total',
    'Cycled to calendar schedule conversions',
    ['status']  # success, failed
)

MATERIALIZATION_DURATION = Histogram(
    'schedule_materialization_duration_seconds',
    'Time spent projecting a cycled schedule onto calendar dates'
)


def _endpoint_label(request: Request) -> str:
    # Route template keeps label cardinality bounded (ids stay out of labels)
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.time()
        try:
            response = await call_next(request)
            duration = time.time() - start_time
            endpoint = _endpoint_label(request)
            REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
            REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

            if duration > SLOW_REQUEST_SECONDS:
                logger.warning(
                    "Slow request: %s %s took %.2fs (status=%s)",
                    request.method,
                    request.url.path,
                    duration,
                    response.status_code
                )
            return response
        except Exception:
            REQUEST_COUNT.labels(method=request.method, endpoint=_endpoint_label(request), status=500).inc()
            raise
        finally:
            ACTIVE_REQUESTS.dec()


def get_metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
