"""FastAPI application exposing the 2FA endpoints."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from otpgate import __version__
from otpgate.api import routes
from otpgate.auth import AuthGateway, SupabaseAuthGateway
from otpgate.config import settings
from otpgate.db import close_pool, init_pool
from otpgate.errors import InvalidFormatError, TwoFactorError
from otpgate.events import async_emit
from otpgate.lifecycle import TwoFactorLifecycle
from otpgate.store import PostgresProfileStore

logger = logging.getLogger(__name__)

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


async def two_factor_error_handler(request: Request, exc: TwoFactorError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # the only request body is the verify payload, so any shape error is a malformed code
    logger.info("Rejected malformed body on %s", request.url.path)
    return await two_factor_error_handler(request, InvalidFormatError())


def _cors_headers(request: Request) -> dict[str, str]:
    origin = request.headers.get("origin")
    if "*" in settings.cors_origins:
        return {"Access-Control-Allow-Origin": "*"}
    if origin and origin in settings.cors_origins:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    return {}


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # runs outside CORSMiddleware, so the CORS header is added here
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        {"error": "Internal server error"}, status_code=500, headers=_cors_headers(request),
    )


def create_app(
    lifecycle: TwoFactorLifecycle | None = None,
    gateway: AuthGateway | None = None,
) -> FastAPI:
    """Build the app. Without an injected lifecycle it runs on the Postgres store."""
    owns_pool = lifecycle is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_pool:
            await init_pool()
        yield
        if owns_pool:
            await close_pool()

    app = FastAPI(
        title="OTPGATE",
        description="TOTP two-factor authentication for account services",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_HEADERS,
    )
    app.add_exception_handler(TwoFactorError, two_factor_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.state.lifecycle = lifecycle or TwoFactorLifecycle(PostgresProfileStore(), on_event=async_emit)
    app.state.gateway = gateway or SupabaseAuthGateway()

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(routes.router)
    return app


app = create_app()
