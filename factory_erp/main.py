"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from factory_erp.core.config import settings
from factory_erp.core.exceptions import ERPError
from factory_erp.core.messages import translate
from factory_erp.core.middleware import request_language, setup_middleware
from factory_erp.core.rate_limiter import limiter
from factory_erp.db.session import Database
from factory_erp.services.cache_service import CacheService

from factory_erp.api.auth import router as auth_router
from factory_erp.api.profile import router as profile_router
from factory_erp.api.permissions import router as permissions_router
from factory_erp.api.users import router as users_router
from factory_erp.api.roles import router as roles_router
from factory_erp.api.suppliers import router as suppliers_router
from factory_erp.api.raw_materials import router as raw_materials_router
from factory_erp.api.purchase_orders import router as purchase_orders_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("factory_erp")


def _error_response(request: Request, status_code: int, code: str, **params) -> JSONResponse:
    language = request_language(request)
    return JSONResponse(
        status_code=status_code,
        content={"detail": translate(code, language, **params), "code": code},
    )


def create_app(database: Optional[Database] = None, cache: Optional[CacheService] = None) -> FastAPI:
    """Build the API around an explicitly constructed database and cache."""
    database = database or Database.from_settings(settings)
    cache = cache or CacheService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("Starting %s (%s)", settings.APP_NAME, settings.ENVIRONMENT)
        database.connect()

        if cache.redis_url is None:
            logger.info("Cache running in local-only mode")
        elif cache.health_check():
            logger.info("Redis connected")
        else:
            logger.warning("Redis not available, using local cache")

        yield

        cache.close()
        database.disconnect()
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Factory ERP: users, roles and permissions, suppliers, purchase orders",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.database = database
    app.state.cache = cache

    # Middleware
    setup_middleware(app)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(ERPError)
    async def erp_exception_handler(request: Request, exc: ERPError):
        return _error_response(request, exc.status_code, exc.code, **exc.params)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.debug("Request validation failed on %s: %s", request.url.path, exc.errors())
        return _error_response(request, 400, "validation_failed")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(request, 500, "internal_error")

    # Register routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(profile_router, prefix="/api")
    app.include_router(permissions_router, prefix="/api")
    app.include_router(users_router, prefix="/api")
    app.include_router(roles_router, prefix="/api")
    app.include_router(suppliers_router, prefix="/api")
    app.include_router(raw_materials_router, prefix="/api")
    app.include_router(purchase_orders_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/api/health")
    async def health():
        """Quick health check endpoint."""
        return {
            "status": "ok",
            "database": database.ping(),
            "cache": cache.health_check(),
        }

    return app


app = create_app()
