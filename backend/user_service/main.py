# user_service/main.py
import logging
import psutil # For system metrics in health check
import time   # For uptime calculation
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from user_service.core.config import ServiceConfig, settings
from user_service.core.exceptions import (
    DuplicateKey,
    InvalidArgument,
    StoreOperationFailed,
    StoreUnavailable,
)
from user_service.core.vault import bootstrap_secrets
from user_service.db.database import check_database_health
from user_service.db.user_repository import UserRepository
from user_service.api.v1.endpoints.users import router as users_router

logger = logging.getLogger(__name__)

APP_START_TIME = time.time()


def build_user_repository(config: ServiceConfig) -> UserRepository:
    return UserRepository(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bootstrap secrets, then build the repository. Any failure aborts startup."""
    logger.info("Executing startup: fetching secrets from Vault...")
    config = await bootstrap_secrets(settings)
    app.state.config = config

    logger.info("Startup: building user repository...")
    repository = build_user_repository(config)
    app.state.user_repository = repository
    logger.info("Application starting...")
    try:
        yield
    finally:
        logger.info("Executing shutdown: disconnecting from database...")
        repository.close()


# --- Exception handlers: repository failure kinds -> HTTP status ---

async def invalid_argument_handler(request: Request, exc: InvalidArgument):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

async def duplicate_key_handler(request: Request, exc: DuplicateKey):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "User store is unavailable"},
    )

async def store_operation_failed_handler(request: Request, exc: StoreOperationFailed):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "User store operation failed"},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        version=settings.VERSION,
        description="User accounts: CRUD and credential validation",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InvalidArgument, invalid_argument_handler)
    app.add_exception_handler(DuplicateKey, duplicate_key_handler)
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(StoreOperationFailed, store_operation_failed_handler)

    @app.get("/", tags=["Root"], include_in_schema=False)
    async def read_root():
        """Root endpoint welcome message."""
        return {"message": f"Welcome to {settings.PROJECT_NAME}"}

    @app.get("/health", status_code=200, tags=["Health Check"])
    async def health_check(request: Request) -> Dict[str, Any]:
        """Application metrics (uptime, memory) and database connectivity."""
        db_health = await check_database_health(request.app.state.user_repository)

        process = psutil.Process()
        memory_info = process.memory_info()
        uptime = str(timedelta(seconds=int(time.time() - APP_START_TIME)))

        return {
            "status": db_health["status"],
            "application": {
                "name": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "status": "OK",
                "uptime": uptime,
                "memory_usage": {
                    "rss_bytes": memory_info.rss,
                    "vms_bytes": memory_info.vms,
                    "percent": f"{process.memory_percent():.2f}%"
                }
            },
            "database": db_health,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # --- Liveness and Readiness Probes ---
    @app.get("/healthz", tags=["Probes"], status_code=status.HTTP_200_OK)
    async def liveness_probe():
        """Liveness probe: the process is running and responsive."""
        return {"status": "live"}

    @app.get("/readyz", tags=["Probes"])
    async def readiness_probe(request: Request, response: Response):
        """Readiness probe: the user store answers a ping."""
        db_health = await check_database_health(request.app.state.user_repository)
        if db_health.get("status") == "OK":
            response.status_code = status.HTTP_200_OK
            return {"status": "ready", "database": db_health}
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "database": db_health}

    app.include_router(users_router, prefix=settings.API_V1_PREFIX)
    return app


app = create_app()
