"""
Furniture Ops API

FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog
from datetime import datetime

from config import settings, check_connection
from exceptions import AppError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Check database connection
    Shutdown: Clean up resources
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            customers=db_status["customers_count"],
            orders=db_status["orders_count"]
        )
    else:
        logger.error(
            "database_connection_failed",
            error=db_status.get("error")
        )

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Furniture Ops",
    description="CRM, finance, production and customer portal backend for furniture manufacturing",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Basic health status and database connection state
    """
    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status
    }


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns:
        API information and available endpoints
    """
    return {
        "name": "Furniture Ops API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "clients": "/api/clients",
            "tasks": "/api/tasks",
            "crm_activities": "/api/crm/activities",
            "ar_aging": "/api/ar-aging",
            "payments": "/api/payments",
            "order_tracking": "/api/order-tracking",
            "production_tracking": "/api/production-tracking",
            "production": "/api/production",
            "portal_messages": "/api/portal/messages",
            "workflows": "/api/workflows",
            "predictions": "/api/predictions",
            "sms": "/api/sms",
            "factory_reviews": "/api/factory-reviews/sessions",
            "collections": "/api/collections",
            "design_boards": "/api/design-boards",
            "analytics": "/api/analytics"
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Errors raised outside a route body, e.g. by auth dependencies."""
    logger.warning(
        "request_rejected",
        path=request.url.path,
        method=request.method,
        code=exc.code,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query parameters are 400s."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": {"errors": jsonable_encoder(exc.errors())},
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes import (
    clients_router,
    tasks_router,
    activities_router,
    ar_aging_router,
    payments_router,
    order_tracking_router,
    production_router,
    production_tracking_router,
    portal_router,
    workflows_router,
    predictions_router,
    sms_router,
    factory_reviews_router,
    collections_router,
    design_boards_router,
    analytics_router,
)

app.include_router(clients_router, prefix="/api/clients", tags=["Clients"])
app.include_router(tasks_router, prefix="/api/tasks", tags=["Tasks"])
app.include_router(activities_router, prefix="/api/crm/activities", tags=["CRM"])
app.include_router(ar_aging_router, prefix="/api/ar-aging", tags=["AR Aging"])
app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])
app.include_router(order_tracking_router, prefix="/api/order-tracking", tags=["Orders"])
app.include_router(production_tracking_router, prefix="/api/production-tracking", tags=["Production"])
app.include_router(production_router, prefix="/api/production", tags=["Production"])
app.include_router(portal_router, prefix="/api/portal/messages", tags=["Portal"])
app.include_router(workflows_router, prefix="/api/workflows", tags=["Workflows"])
app.include_router(predictions_router, prefix="/api/predictions", tags=["Predictions"])
app.include_router(sms_router, prefix="/api/sms", tags=["SMS"])
app.include_router(factory_reviews_router, prefix="/api/factory-reviews/sessions", tags=["Factory Reviews"])
app.include_router(collections_router, prefix="/api/collections", tags=["Collections"])
app.include_router(design_boards_router, prefix="/api/design-boards", tags=["Design Boards"])
app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
