"""HTTP surface of the commission gateway"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from commission_gateway import __version__
from commission_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from commission_gateway.api.v1 import commission
from commission_gateway.infrastructure.observability.logging import setup_logging
from commission_gateway.config import get_settings


def create_app() -> FastAPI:
    """Build the API: liveness, Prometheus scrape target and /v1/commission"""
    settings = get_settings()
    setup_logging(settings.log_level, service=settings.service_name)

    app = FastAPI(
        title="Commission Gateway",
        description="Commission for a card transaction, in the reference currency",
        version=__version__,
    )

    # RequestIDMiddleware is added last so the id exists before latency is measured
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name, "reference_currency": settings.reference_currency}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(commission.router, prefix="/v1", tags=["commissions"])

    return app


app = create_app()
