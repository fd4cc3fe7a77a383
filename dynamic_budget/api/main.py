"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from dynamic_budget.api.errors import status_code_for
from dynamic_budget.api.middleware import RequestIDMiddleware, MetricsMiddleware
from dynamic_budget.api.v1 import budget, fixed_costs, notifications, plaid, transactions, users, webhooks
from dynamic_budget.domain.exceptions import DomainException
from dynamic_budget.infrastructure.observability.logging import setup_logging
from dynamic_budget.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Dynamic Budget Service",
        description="Per-period spending budget reconciled against bank transactions",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Domain errors that escape a route still get their status code
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        logging.warning(
            f"Unhandled domain error: {exc}",
            extra={"request_id": getattr(request.state, "request_id", "unknown")},
        )
        return JSONResponse(status_code=status_code_for(exc), content={"detail": str(exc)})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(users.router, prefix="/v1", tags=["users"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(budget.router, prefix="/v1", tags=["budget"])
    app.include_router(fixed_costs.router, prefix="/v1", tags=["fixed-costs"])
    app.include_router(notifications.router, prefix="/v1", tags=["notifications"])
    app.include_router(plaid.router, prefix="/v1", tags=["plaid"])
    app.include_router(webhooks.router, prefix="/v1", tags=["webhooks"])

    return app


app = create_app()
