"""
Global Exception Handling

Every failure leaving the relay is rendered as the same JSON envelope:
{"success": false, "error": "<message>"}.
"""

import traceback
from typing import Optional, Dict, Any
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lightx_relay.core.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class RelayBaseException(Exception):
    """Base exception for the relay."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RelayBaseException):
    """Raised when the caller's request is unusable."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class PayloadTooLargeError(RelayBaseException):
    """Raised when the request body exceeds the configured limit."""

    def __init__(self, limit_bytes: int, **kwargs):
        super().__init__(
            f"Request body exceeds {limit_bytes} bytes",
            code=413,
            **kwargs
        )
        self.details["limit_bytes"] = limit_bytes


class ConfigurationError(RelayBaseException):
    """Raised when the relay is missing required configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, **kwargs)


class PipelineStageError(RelayBaseException):
    """Raised when a pipeline stage gets a reply it cannot use."""

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, code=500, stage=stage, **kwargs)


class ExternalAPIError(RelayBaseException):
    """Raised when a call to LightX or the source image host fails."""

    def __init__(self, message: str, service: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, code=500, **kwargs)
        self.details["service"] = service
        self.details["http_status"] = http_status


# =============================================================================
# Exception Handlers
# =============================================================================

def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the relay's failure envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message}
    )


def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(RelayBaseException)
    async def relay_exception_handler(request: Request, exc: RelayBaseException):
        log = logger.warning if exc.code < 500 else logger.error
        log(
            "relay_exception",
            error=exc.message,
            code=exc.code,
            failed_stage=exc.stage,
            details=exc.details,
            path=str(request.url.path)
        )
        return error_response(exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            if first.get("type") == "json_invalid":
                message = "Request body is not valid JSON"
            else:
                # Integer parts are character offsets or list indexes, not field names
                location = ".".join(
                    part for part in first.get("loc", ()) if isinstance(part, str) and part != "body"
                )
                message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        else:
            message = "Invalid request body"

        logger.warning("request_validation_failed", error=message, path=str(request.url.path))
        return error_response(400, message)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )
        return error_response(500, str(exc) or "Unknown error")
