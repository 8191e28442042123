"""Middleware and error handlers for the HTTP boundary."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from monlur.api.schemas import ErrorResponse
from monlur.config import Settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
CODE_REQUIRED = "Code is required and must be a string"

CallNext = Callable[[Request], Awaitable[Response]]


def install_middleware(app: FastAPI, settings: Settings) -> None:
    """Add body limit, API key check and CORS (outermost) to ``app``."""

    @app.middleware("http")
    async def require_api_key(request: Request, call_next: CallNext) -> Response:
        if settings.api_key and request.method != "OPTIONS":
            provided = request.headers.get(API_KEY_HEADER, "")
            if not secrets.compare_digest(provided.encode(), settings.api_key.encode()):
                logger.info("Rejected %s %s: bad or missing API key", request.method, request.url.path)
                return JSONResponse(status_code=401, content={"error": "Unauthorized"})
        return await call_next(request)

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next: CallNext) -> Response:
        length = request.headers.get("content-length")
        if length is not None and length.isdigit() and int(length) > settings.max_body_bytes:
            return JSONResponse(
                status_code=413,
                content=ErrorResponse(
                    error=f"Request body exceeds {settings.max_body_bytes} bytes"
                ).model_dump(),
            )
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", API_KEY_HEADER],
    )


def install_error_handlers(app: FastAPI) -> None:
    """Report malformed bodies in the service's error envelope."""

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.debug("Invalid request body: %s", exc.errors())
        return JSONResponse(status_code=400, content=ErrorResponse(error=CODE_REQUIRED).model_dump())
