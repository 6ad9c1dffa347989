"""FastAPI application for the legal DMS."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import NoResultFound

from ..services import ConflictError
from ..settings import DmsDatabase, DmsSettings, init_engine
from ..storage import ObjectStorageClient, ObjectStorageConfig
from .routes import ROUTERS

__all__ = ["create_app", "DmsSettings"]

logger = structlog.get_logger(__name__)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    detail = str(exc.args[0]) if exc.args else str(exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


def create_app(settings: DmsSettings | None = None, storage=None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``storage`` defaults to an S3/MinIO client configured from the
    environment; tests pass an in-memory double.
    """

    settings = settings or DmsSettings.from_env()
    engine = init_engine(settings)
    database = DmsDatabase(engine=engine)
    if storage is None:
        storage = ObjectStorageClient(ObjectStorageConfig.from_env())

    app = FastAPI(
        title="Legal DMS API",
        version="1.0.0",
        description="법률 문서 관리 시스템",
    )
    app.state.settings = settings
    app.state.database = database
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # 예외 매핑
    # ========================================================================

    @app.exception_handler(NoResultFound)
    async def _not_found(request: Request, exc: NoResultFound):
        if not exc.args:
            return JSONResponse(status_code=404, content={"detail": "Resource not found"})
        return _error(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(PermissionError)
    async def _forbidden(request: Request, exc: PermissionError):
        return _error(status.HTTP_403_FORBIDDEN, exc)

    @app.exception_handler(ConflictError)
    async def _conflict(request: Request, exc: ConflictError):
        return _error(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(ValueError)
    async def _bad_request(request: Request, exc: ValueError):
        return _error(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(Exception)
    async def _handle_errors(request: Request, exc: Exception):
        if isinstance(exc, HTTPException):
            raise exc
        logger.exception("unhandled_error", path=request.url.path, method=request.method)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "error": str(exc)},
        )

    for router in ROUTERS:
        app.include_router(router)

    return app
