"""Field Service API: FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldservice import __version__
from fieldservice.config import settings
from fieldservice.database import async_engine
from fieldservice.entities import ENTITY_METADATA, validate_entity_metadata
from fieldservice.exceptions import FieldServiceError
from fieldservice.rbac.evaluator import PermissionEvaluator
from fieldservice.rbac.loader import PermissionConfig, load_permission_config

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Field Service API...")

    # Verify DB connection
    try:
        async with async_engine.begin() as conn:
            await conn.exec_driver_sql("SELECT 1")
        logger.info("Database connection verified")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")

    logger.info("Field Service API started successfully")
    yield

    await async_engine.dispose()
    logger.info("Field Service API shut down")


async def field_service_error_handler(request: Request, exc: FieldServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(config: PermissionConfig | None = None) -> FastAPI:
    """Build the application.

    The permission configuration is loaded and validated here, before any
    route exists; an invalid document or entity definition raises and the
    process never starts serving.
    """
    for metadata in ENTITY_METADATA.values():
        validate_entity_metadata(metadata)
    if config is None:
        config = load_permission_config(settings.PERMISSIONS_FILE)

    app = FastAPI(
        title="Field Service API",
        description="Work orders, invoices and contracts with role-based and row-level access control",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.permission_config = config
    app.state.evaluator = PermissionEvaluator(config)

    app.add_exception_handler(FieldServiceError, field_service_error_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Import and register routers
    from fieldservice.routes import permissions
    from fieldservice.routes.entities import entity_routers

    app.include_router(permissions.router)
    for router in entity_routers():
        app.include_router(router)

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "Field Service API",
            "version": __version__,
            "permissions": config.version,
        }

    return app


app = create_app()
