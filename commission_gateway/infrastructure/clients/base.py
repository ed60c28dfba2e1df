"""Shared plumbing for reference-data HTTP clients"""

import logging
from typing import Any, Dict, Type

import httpx

from commission_gateway.domain.exceptions import UpstreamError, UpstreamErrorKind
from commission_gateway.infrastructure.observability.metrics import (
    upstream_failure_counter,
    upstream_latency_histogram,
)

logger = logging.getLogger(__name__)


def build_http_client(base_url: str, timeout: float, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Blocking client with a mandatory per-request timeout"""
    return httpx.Client(
        base_url=base_url,
        timeout=timeout,
        headers={"Accept": "application/json"},
        transport=transport,
    )


def upstream_failure(
    error_cls: Type[UpstreamError],
    service: str,
    message: str,
    kind: UpstreamErrorKind,
    status_code: int | None = None,
) -> UpstreamError:
    """Log, count and build an upstream error; the caller raises it"""
    upstream_failure_counter.labels(service=service, kind=kind.value).inc()
    level = logging.WARNING if kind is UpstreamErrorKind.NOT_FOUND else logging.ERROR
    logger.log(
        level,
        message,
        extra={"upstream": service, "error_kind": kind.value, "status_code": status_code},
    )
    return error_cls(message, kind, status_code)


def send_upstream_request(
    client: httpx.Client,
    path: str,
    *,
    service: str,
    label: str,
    error_cls: Type[UpstreamError],
    params: Dict[str, Any] | None = None,
    not_found_message: str | None = None,
) -> str:
    """
    Issue a GET and return the body of a 200 response.

    Status handling:
    - 429 -> RATE_LIMITED (callers may back off on this specifically)
    - 404 -> NOT_FOUND
    - any other non-200 -> HTTP_ERROR
    - timeouts and transport failures -> NETWORK

    Raises:
        UpstreamError: As error_cls, tagged with the kind above
    """
    try:
        with upstream_latency_histogram.labels(service=service).time():
            response = client.get(path, params=params)
    except httpx.TimeoutException as e:
        raise upstream_failure(
            error_cls, service, f"{label} network request failed: timeout ({e})", UpstreamErrorKind.NETWORK
        ) from e
    except httpx.RequestError as e:
        raise upstream_failure(
            error_cls, service, f"{label} network request failed: {e}", UpstreamErrorKind.NETWORK
        ) from e

    status = response.status_code
    if status == httpx.codes.TOO_MANY_REQUESTS:
        raise upstream_failure(
            error_cls, service, f"{label} failed due to API rate limit (429).", UpstreamErrorKind.RATE_LIMITED, status
        )
    if status == httpx.codes.NOT_FOUND:
        message = not_found_message or f"{label} returned 404 Not Found."
        raise upstream_failure(error_cls, service, message, UpstreamErrorKind.NOT_FOUND, status)
    if status != httpx.codes.OK:
        raise upstream_failure(
            error_cls, service, f"{label} returned status code: {status}", UpstreamErrorKind.HTTP_ERROR, status
        )

    return response.text
