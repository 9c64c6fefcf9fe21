"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from land_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from land_ledger.api.v1 import jobs, sales, templates
from land_ledger.infrastructure.observability.logging import setup_logging
from land_ledger.config import settings

setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Land Ledger",
        description="Installment schedules, payment ledger and recurring expense/revenue generation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Last added = first executed
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(sales.router, prefix="/v1", tags=["sales"])
    app.include_router(templates.router, prefix="/v1", tags=["templates"])
    app.include_router(jobs.router, prefix="/v1", tags=["jobs"])

    return app


app = create_app()
