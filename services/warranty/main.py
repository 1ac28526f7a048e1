"""
Warranty Service - Main Application
===================================

FastAPI application for device warranty contracts, repair claims and
coverage limits.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import StorageBackend, NotificationBackend, settings
from shared.database.kafka import KafkaClient
from shared.database.mongodb import MongoDBClient
from shared.logging import get_logger, setup_logging
from shared.models.common import HealthResponse

from services.warranty.dependencies import build_container, get_container, set_container
from services.warranty.errors import (
    BusinessRuleError,
    IdentifierExhaustedError,
    NotFoundError,
    ValidationError,
    WarrantyServiceError,
)
from services.warranty.routes import claims, members, public, warranties

# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="warranty",
)

logger = get_logger(__name__)

# Domain error family -> HTTP status
ERROR_STATUS: dict[type[WarrantyServiceError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BusinessRuleError: status.HTTP_409_CONFLICT,
    IdentifierExhaustedError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "warranty_service_starting",
        environment=settings.environment.value,
        port=settings.ports.warranty,
        storage=settings.storage_backend.value,
        notifications=settings.notification_backend.value,
    )

    # Startup
    try:
        if settings.storage_backend == StorageBackend.MONGODB:
            MongoDBClient.get_client()
            await MongoDBClient.create_indexes()
            logger.info("mongodb_connected")

        if settings.notification_backend == NotificationBackend.KAFKA:
            await KafkaClient.get_producer()
            logger.info("kafka_connected")

        set_container(build_container(settings))

    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("warranty_service_shutting_down")
    await get_container().notifier.drain()
    set_container(None)
    await KafkaClient.close()
    await MongoDBClient.close()


# Create FastAPI application
app = FastAPI(
    title="EasyCare Warranty Service",
    description="Device warranty contracts, repair claims and coverage limits",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Service health check.

    Returns health status of the service and its configured backends.
    """
    components: dict[str, dict[str, Any]] = {}

    if settings.storage_backend == StorageBackend.MONGODB:
        components["mongodb"] = await MongoDBClient.health_check()
    else:
        components["storage"] = {"status": "healthy", "backend": "memory"}

    if settings.notification_backend == NotificationBackend.KAFKA:
        components["kafka"] = await KafkaClient.health_check()

    all_healthy = all(
        c.get("status") == "healthy" for c in components.values()
    )

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        service="warranty",
        version="0.1.0",
        components=components,
    )


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "EasyCare Warranty Service",
        "version": "0.1.0",
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    warranties.router,
    prefix="/api/v1/warranties",
    tags=["Warranties"],
)

app.include_router(
    claims.router,
    prefix="/api/v1/claims",
    tags=["Claims"],
)

app.include_router(
    members.members_router,
    prefix="/api/v1/members",
    tags=["Members"],
)

app.include_router(
    members.shops_router,
    prefix="/api/v1/shops",
    tags=["Shops"],
)

app.include_router(
    members.staff_router,
    prefix="/api/v1/staff",
    tags=["Staff"],
)

app.include_router(
    public.router,
    prefix="/api/v1/public",
    tags=["Public"],
)


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(WarrantyServiceError)
async def domain_exception_handler(request: Request, exc: WarrantyServiceError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    status_code = next(
        (code for family, code in ERROR_STATUS.items() if isinstance(exc, family)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "domain_exception",
        status_code=status_code,
        error_code=exc.error_code,
        detail=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": exc.message,
            "error_code": exc.error_code,
            "status_code": status_code,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500,
        },
    )


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.warranty.main:app",
        host="0.0.0.0",
        port=settings.ports.warranty,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
