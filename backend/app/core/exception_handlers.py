"""
FastAPI exception handlers.

WHAT: Turn every failure into the clinic API's error envelope
{success, error, message, status_code, details}.

WHY: Clients branch on `error` and `status_code` only, whether the failure
came from a service rule, request validation, routing or a crash.
"""

import logging
from typing import Any, List, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException


logger = logging.getLogger(__name__)

VALUE_ERROR_PREFIX = "Value error, "


def error_response(
    status_code: int,
    error: str,
    message: Any,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "message": message,
            "status_code": status_code,
            "details": details,
        },
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render a domain exception; server-side ones are also logged."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__}: {exc.message}",
            extra={"path": request.url.path, "method": request.method},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _field_path(loc: tuple) -> str:
    # pydantic inserts validator tags such as "function-after[...]" into loc
    return ".".join(str(part) for part in loc if not str(part).startswith("function-"))


def describe_errors(raw_errors: Sequence[dict]) -> List[dict]:
    """
    Flatten pydantic errors into {field, message, type}.

    Messages raised by our own validators lose pydantic's "Value error, "
    prefix so the client sees the text the validator wrote.
    """
    errors = []
    for error in raw_errors:
        message = error["msg"]
        if message.startswith(VALUE_ERROR_PREFIX):
            message = message[len(VALUE_ERROR_PREFIX):]
        errors.append({"field": _field_path(error["loc"]), "message": message, "type": error["type"]})
    return errors


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report every invalid field of a request as a 400."""
    return error_response(400, "ValidationError", "Validation failed", {"errors": describe_errors(exc.errors())})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes, wrong methods and a missing bearer header."""
    return error_response(
        exc.status_code,
        "HTTPException",
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last resort for unexpected errors.

    WHY: The traceback goes to the log; the client gets a generic message
    so internals are never exposed (OWASP A04).
    """
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method},
    )
    return error_response(500, "InternalServerError", "An unexpected error occurred")
