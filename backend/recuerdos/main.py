from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from recuerdos.api.auth import router as auth_router
from recuerdos.api.memories import router as memories_router
from recuerdos.core.config import Settings, get_settings
from recuerdos.core.database import create_engine, create_sessionmaker, create_tables
from recuerdos.core.errors import InvalidInput, RecuerdosError
from recuerdos.core.logging import configure_logging
from recuerdos.core.rate_limit import limiter
from recuerdos.schemas import describe_validation_error
from recuerdos.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

LOCAL_ORIGIN_REGEX = (
    r"^https?://(localhost|127\.0\.0\.1|192\.168\.\d+\.\d+|10\.\d+\.\d+\.\d+|172\.(1[6-9]|2\d|3[0-1])\.\d+\.\d+)(:\d+)?$"
)


async def _recuerdos_error_handler(request: Request, exc: RecuerdosError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content={"error": describe_validation_error(exc)},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": RecuerdosError.default_message})


def create_app(
    settings: Settings | None = None,
    storage: ObjectStorage | None = None,
    engine: AsyncEngine | None = None,
) -> FastAPI:
    """Build the application with its database engine and object store.

    Either collaborator can be passed in; otherwise both are built from
    ``settings``. The object store stays unset when storage is not configured,
    in which case photo uploads fail with ``StorageUnavailable``.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine = engine or create_engine(settings)
    if storage is None and settings.storage_configured:
        storage = ObjectStorage.from_settings(settings)

    app = FastAPI(title="Recuerdos", version="1.0.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)
    app.state.storage = storage
    app.state.limiter = limiter

    app.add_exception_handler(RecuerdosError, _recuerdos_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_origin_regex=LOCAL_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(auth_router)
    app.include_router(memories_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    static_dir = Path(settings.STATIC_DIR)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    @app.on_event("startup")
    async def prepare_database() -> None:
        if settings.AUTO_CREATE_TABLES:
            await create_tables(app.state.engine)
            logger.info("Database tables ensured")
        if app.state.storage is None:
            logger.warning("Object storage is not configured; photo uploads will fail")
        logger.info("Recuerdos API started")

    @app.on_event("shutdown")
    async def dispose_engine() -> None:
        await app.state.engine.dispose()

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("recuerdos.main:app", host="0.0.0.0", port=settings.PORT)
