"""
FastAPI application entry point.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.db import close_db, init_db
from app.errors import AppError, ErrorKind
from app.logging_config import configure_logging
from app.routers import fcm, push
from app.services.providers import build_provider, build_webpush_provider
from app.settings import Settings, settings

configure_logging(settings)
logger = logging.getLogger(__name__)


def warn_insecure_defaults(settings: Settings) -> None:
    """Log configuration that must not reach production."""
    if settings.jwt_secret_is_default:
        logger.warning("JWT_SECRET not set - using the development signing key")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting %s...", settings.app_name)
    warn_insecure_defaults(settings)
    await init_db()
    app.state.push_provider = build_provider(settings)
    app.state.webpush_provider = build_webpush_provider(settings)
    yield
    logger.info("Shutting down %s...", settings.app_name)
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests for logging."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Health check endpoint
@app.get("/healthz", tags=["health"])
@app.get("/health", tags=["health"])
async def healthz():
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}


@app.get("/version", tags=["meta"])
async def version():
    return {
        "version": settings.app_version,
        "build_sha": settings.build_sha,
    }


app.include_router(fcm.router)
app.include_router(push.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Map service errors to responses by kind."""
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("Internal error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            {"success": False, "message": "Internal server error"},
            status_code=exc.status_code,
        )
    return JSONResponse(
        {"success": False, "message": exc.message},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {
            "success": False,
            "message": "Invalid request data",
            "errors": jsonable_encoder(exc.errors()),
        },
        status_code=400,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"success": False, "message": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


# Generic exception handler for unhandled errors
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Log the fault; never leak internals to the caller."""
    logger.error(
        "Unhandled exception: %s",
        exc,
        exc_info=exc,
        extra={"path": str(request.url.path), "method": request.method},
    )
    return JSONResponse(
        {"success": False, "message": "Internal server error"},
        status_code=500,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
