"""FastAPI ops application served next to the daemon"""

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from rental_lifecycle.api.middleware import MetricsMiddleware, RequestIDMiddleware
from rental_lifecycle.api.v1 import runs
from rental_lifecycle.config import settings


def create_app() -> FastAPI:
    """Create and configure the ops application"""
    app = FastAPI(
        title="Rental Lifecycle Ops",
        description="Health, metrics and run summaries for the rental reminder jobs",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    # last added = first executed
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(runs.router, prefix="/v1", tags=["runs"])

    return app


app = create_app()
