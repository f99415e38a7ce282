"""Global error handler: consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from codequest.errors import CodequestError, UpstreamFailure

logger = structlog.get_logger()


def _safe_errors(exc: RequestValidationError) -> list[dict]:
    """Field locations and messages only; submitted values are not echoed back."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Missing or malformed input is a 400."""
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation error", "errors": _safe_errors(exc)},
        )

    @app.exception_handler(CodequestError)
    async def domain_exception_handler(request: Request, exc: CodequestError) -> JSONResponse:
        """Map the domain taxonomy to status codes with client-safe messages."""
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                method=request.method,
                error_type=type(exc).__name__,
                error=exc.detail or exc.public_message,
                upstream=isinstance(exc, UpstreamFailure),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.public_message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
