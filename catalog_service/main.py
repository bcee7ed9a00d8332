"""
Catalog Service - FastAPI application

Run with ``uvicorn catalog_service.main:app`` or ``python -m catalog_service.main``.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_service.api.routes import get_repository, router
from catalog_service.config import Settings, settings
from catalog_service.errors import CatalogError, StorageError, ValidationError
from catalog_service.repositories import build_repository
from catalog_service.repositories.base import CatalogRepository
from catalog_service.telemetry import instrument_app, instrument_engine, setup_logging, setup_tracing

VERSION = "1.0.0"

setup_logging(
    service_name=settings.service_name,
    log_level=settings.log_level,
    log_format=settings.log_format
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _lifespan(config: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {config.service_name} ({config.environment}) on {config.storage_backend}")

        setup_tracing(
            service_name=config.tracing_service_name,
            otlp_endpoint=config.otel_endpoint,
            environment=config.environment,
            version=VERSION,
            enabled=config.otel_enabled
        )

        try:
            repository = build_repository(config)
        except Exception as e:
            logger.error(f"Storage initialization failed: {e}")
            raise

        engine = getattr(repository, "engine", None)
        if config.otel_enabled and engine is not None:
            instrument_engine(engine)

        app.state.repository = repository
        logger.info(f"{config.service_name} ready")

        yield

        logger.info(f"Shutting down {config.service_name}")
        if engine is not None:
            engine.dispose()

    return lifespan


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CatalogError)
    async def catalog_error(request: Request, exc: CatalogError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        error = ValidationError.from_pydantic(exc.errors())
        logger.info(f"{request.method} {request.url.path} -> 400 with {len(error.details)} invalid field(s)")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "type": exc.__class__.__name__}
        )


def _register_probes(app: FastAPI, config: Settings) -> None:
    @app.get("/health", tags=["probes"])
    async def health_check():
        """Liveness: the process is serving requests"""
        return {"status": "healthy", "service": config.service_name, "version": VERSION, "timestamp": _now()}

    @app.get("/ready", tags=["probes"])
    def readiness_check(repository: CatalogRepository = Depends(get_repository)):
        """Readiness: the storage backend answers"""
        body = {"service": config.service_name, "storage": repository.backend, "timestamp": _now()}
        try:
            repository.ping()
        except StorageError as e:
            logger.warning(f"Readiness check failed: {e.message}")
            return JSONResponse(status_code=503, content={**body, "status": "not_ready", "error": e.message})
        return {**body, "status": "ready"}

    @app.get("/", tags=["probes"])
    async def root():
        return {
            "service": config.service_name,
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "ready": "/ready"
        }


def create_app(config: Settings = settings) -> FastAPI:
    """Assemble the application; storage is attached by the lifespan handler"""
    app = FastAPI(
        title="Catalog Service",
        description="Product, department and category catalog for the supermarket",
        version=VERSION,
        lifespan=_lifespan(config)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.otel_enabled:
        instrument_app(app)

    _register_error_handlers(app)
    _register_probes(app, config)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "catalog_service.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
