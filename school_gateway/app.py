"""School Gateway - FastAPI server for public form submissions and media uploads."""

import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_gateway.shared.admission.routes import router as admission_router
from school_gateway.shared.auth.auth import TokenAuthService
from school_gateway.shared.auth.database import SessionLocal, init_db
from school_gateway.shared.config import Settings, get_settings
from school_gateway.shared.contact.routes import router as contact_router
from school_gateway.shared.cors import CORS_ALLOW_HEADERS, CORS_EXPOSE_HEADERS, cors_headers
from school_gateway.shared.errors import GatewayError, MethodNotAllowedError
from school_gateway.shared.rate_limit.rate_limiter import (
    DatabaseRateLimiter,
    InMemoryRateLimiter,
    RateLimiter,
)
from school_gateway.shared.upload.buckets import BUCKETS, BucketConfig
from school_gateway.shared.upload.routes import router as upload_router
from school_gateway.shared.upload.storage import LocalObjectStore, MinioObjectStore, ObjectStore


def build_rate_limiter(settings: Settings, scope: str, quota: int) -> RateLimiter:
    """Rate limiter for one form, using the configured backend."""
    if settings.rate_limit_backend == "database":
        return DatabaseRateLimiter(
            SessionLocal,
            scope=scope,
            quota=quota,
            window_seconds=settings.rate_limit_window_seconds,
            sweep_interval_seconds=settings.rate_limit_sweep_interval_seconds,
        )
    if settings.rate_limit_backend != "memory":
        raise ValueError(f"Unknown RATE_LIMIT_BACKEND: {settings.rate_limit_backend}")
    return InMemoryRateLimiter(
        quota=quota,
        window_seconds=settings.rate_limit_window_seconds,
        sweep_interval_seconds=settings.rate_limit_sweep_interval_seconds,
    )


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "minio":
        return MinioObjectStore.from_settings(settings)
    if settings.storage_backend != "local":
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.storage_backend}")
    return LocalObjectStore(Path(settings.upload_dir), settings.public_base_url)


def _error_response(request: Request, status_code: int, content: dict, headers: Optional[Dict[str, str]] = None):
    """JSON error envelope with CORS headers, even for errors raised outside CORSMiddleware."""
    response_headers = cors_headers(request)
    if headers:
        response_headers.update(headers)
    return JSONResponse(status_code=status_code, content=content, headers=response_headers)


def create_app(
    settings: Optional[Settings] = None,
    contact_rate_limiter: Optional[RateLimiter] = None,
    admission_rate_limiter: Optional[RateLimiter] = None,
    auth_service: Optional[TokenAuthService] = None,
    object_store: Optional[ObjectStore] = None,
    buckets: Optional[Dict[str, BucketConfig]] = None,
) -> FastAPI:
    """Build the application. Components not passed in are built from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="School Gateway",
        description="Validated contact and admission submissions and media uploads for the school website",
        version="0.1.0",
    )

    # Components owned by this app instance
    app.state.settings = settings
    if contact_rate_limiter is None:
        contact_rate_limiter = build_rate_limiter(settings, "contact", settings.contact_rate_limit)
    app.state.contact_rate_limiter = contact_rate_limiter
    if admission_rate_limiter is None:
        admission_rate_limiter = build_rate_limiter(settings, "admission", settings.admission_rate_limit)
    app.state.admission_rate_limiter = admission_rate_limiter
    if auth_service is None:
        auth_service = TokenAuthService(
            settings.auth_jwt_secret,
            algorithm=settings.auth_jwt_algorithm,
            audience=settings.auth_jwt_audience,
        )
    app.state.auth_service = auth_service
    if object_store is None:
        object_store = build_object_store(settings)
    app.state.object_store = object_store
    app.state.buckets = BUCKETS if buckets is None else buckets

    # Initialize database on startup
    @app.on_event("startup")
    async def startup_event():
        try:
            init_db()
            logging.info("Database initialization completed on startup")
        except Exception as e:
            # Log error but don't crash the app; submissions will report a persistence error
            logging.error(f"Database initialization error on startup: {str(e)}")

    app.include_router(contact_router)
    app.include_router(admission_router)
    app.include_router(upload_router)

    # CORS configuration - must be added before exception handlers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=False,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return _error_response(request, exc.status_code, exc.to_dict(), exc.headers)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _starlette_error(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _starlette_error(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid value')}"
            for error in exc.errors()
        ]
        return _error_response(request, 400, {"error": "Invalid request", "details": details})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return _error_response(request, 500, {"error": "An unexpected error occurred"})

    @app.get("/")
    async def root():
        return {"message": "School Gateway API is running", "status": "ok"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


def _starlette_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        error = MethodNotAllowedError()
        return _error_response(request, error.status_code, error.to_dict(), getattr(exc, "headers", None))
    if isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = str(exc.detail)
    return _error_response(request, exc.status_code, {"error": message}, getattr(exc, "headers", None))


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
