# streamz/app.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from streamz import __version__
from streamz.config import Settings, get_settings
from streamz.errors import StreamzError
from streamz.metadata import MetadataStore
from streamz.relay import VideoRelay
from streamz.storage import S3Storage
from streamz import frontend, genres, stream, users, videos

logger = logging.getLogger("streamz.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owned = []
    if app.state.metadata is None:
        app.state.metadata = MetadataStore.from_url(settings.database_url)
        app.state.metadata.create_all()
        owned.append(app.state.metadata.dispose)
        logger.info("Database connection established")
    if app.state.storage is None:
        app.state.storage = S3Storage.from_settings(settings)
        owned.append(app.state.storage.close)
    app.state.relay = VideoRelay(
        app.state.metadata,
        app.state.storage,
        chunk_size=settings.chunk_size,
        lookup_timeout=settings.lookup_timeout,
    )
    try:
        yield
    finally:
        for close in owned:
            close()
        logger.info("Shut down")


def _error_response(status_code: int, error: str, message: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        {"error": error, "message": message, "code": code},
        status_code=status_code,
        headers=headers,
    )


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StreamzError)
    async def streamz_error(request: Request, exc: StreamzError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = "; ".join(
            f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in errors
        )
        return _error_response(400, "Invalid request", detail or "Invalid request", "VALIDATION_ERROR")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _error_response(
            exc.status_code,
            str(exc.detail),
            str(exc.detail),
            f"HTTP_{exc.status_code}",
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error", "Something went wrong on our end", "INTERNAL_ERROR")


def create_app(
    settings: Optional[Settings] = None,
    *,
    metadata: Optional[MetadataStore] = None,
    storage=None,
) -> FastAPI:
    """
    Build the API. ``metadata`` / ``storage`` are created from settings at
    startup unless handed in; handed-in handles are left open at shutdown.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Streamz API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.metadata = metadata
    app.state.storage = storage
    app.state.relay = None
    if metadata is not None and storage is not None:
        app.state.relay = VideoRelay(
            metadata, storage, chunk_size=settings.chunk_size, lookup_timeout=settings.lookup_timeout
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials="*" not in settings.origins,
        allow_methods=["GET", "HEAD", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Range", "Content-Type", "Authorization", "X-Requested-With"],
        expose_headers=stream.EXPOSE_HEADERS,
        max_age=86400,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    install_error_handlers(app)

    app.include_router(stream.router, prefix="/api/stream", tags=["stream"])
    app.include_router(stream.router, prefix="/stream", include_in_schema=False)
    app.include_router(videos.router, prefix="/api/videos", tags=["videos"])
    app.include_router(genres.router, prefix="/api/genres", tags=["genres"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(frontend.router, include_in_schema=False)

    @app.get("/api/health")
    def health():
        return {
            "status": "OK",
            "service": "Streamz API",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }

    return app


def main() -> None:
    import asyncio

    from hypercorn.asyncio import serve
    from hypercorn.config import Config

    settings = get_settings()
    config = Config()
    config.bind = [f"{settings.host}:{settings.port}"]
    asyncio.run(serve(create_app(settings), config))


if __name__ == "__main__":
    main()
