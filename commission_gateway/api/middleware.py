"""Request correlation and latency middleware for the commission API"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from commission_gateway.infrastructure.observability.metrics import request_duration_histogram

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNMATCHED_ENDPOINT = "unmatched"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Carry one request id from the caller through the commission log lines.

    An incoming X-Request-ID is kept so upstream proxies can correlate; when
    absent a UUID4 is minted. The id is echoed on every response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Observe request latency labelled by route template, not raw path"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        # the router records the matched route in the shared scope
        route = request.scope.get("route")
        endpoint = getattr(route, "path", UNMATCHED_ENDPOINT)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(duration)
        logger.debug(
            "Request served",
            extra={"endpoint": endpoint, "status_code": response.status_code, "duration_ms": duration * 1000},
        )

        return response
