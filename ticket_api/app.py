"""
FastAPI application entry point for the ticket API.
"""

from __future__ import annotations

import argparse
import logging
import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from ticket_api.config import Settings, get_settings
from ticket_api.errors import (
    OriginNotAllowedError,
    TicketServiceError,
    describe_validation_errors,
)
from ticket_api.routes import router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _service_error_handler(request: Request, exc: TicketServiceError):
    return _error(exc.status_code, exc.message)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, describe_validation_errors(exc.errors()))


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    # Called synchronously by SlowAPIMiddleware.
    return _error(429, f"Rate limit exceeded: {exc.detail}")


async def _unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error for %s %s", request.method, request.url.path, exc_info=exc
    )
    return _error(500, "Server error")


def _build_limiter(settings: Settings) -> Limiter:
    default_limits = (
        [f"{settings.rate_limit_per_minute}/minute"]
        if settings.rate_limit_per_minute > 0
        else []
    )
    return Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
        default_limits=default_limits,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Ticket Creator API", version="0.1.0")

    app.state.limiter = _build_limiter(settings)
    app.add_exception_handler(TicketServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    # Middleware added later wraps the ones added earlier.
    app.add_middleware(SlowAPIMiddleware)
    allowed_origins = settings.allowed_origin_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def check_origin(request: Request, call_next):
        origin = request.headers.get("origin")
        if origin and "*" not in allowed_origins and origin not in allowed_origins:
            logger.warning("Rejected request from origin %s", origin)
            return await _service_error_handler(request, OriginNotAllowedError())
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s %s %.1f ms",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Ticket API server")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    parser.add_argument(
        "--reload", action="store_true", help="Restart on code changes (development)"
    )
    args = parser.parse_args()

    uvicorn.run(
        "ticket_api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
