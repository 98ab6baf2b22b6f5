"""
Error envelope.

Every failure leaves the API as

    {"success": false, "error": {"kind": ..., "message": ..., "fields": [...]}}

with the HTTP status taken from the error kind.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kungfu import Result, Ok, Error

from orderflow.errors import ErrorKind, FieldError, OrderError, OrderErrors, OrderFailure

logger = logging.getLogger(__name__)

HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.PAYMENT_PROCESSOR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap[T](result: Result[T, OrderError]) -> T:
    """Value of Ok; Error is raised as OrderFailure and rendered by the handler."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise OrderFailure(e)


def error_body(error: OrderError) -> dict[str, Any]:
    return {
        "success": False,
        "error": {
            "kind": error.kind.value,
            "message": error.message,
            "fields": [{"field": f.field, "message": f.message} for f in error.fields],
        },
    }


def error_response(error: OrderError) -> JSONResponse:
    return JSONResponse(status_code=HTTP_STATUS[error.kind], content=error_body(error))


async def order_failure_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, OrderFailure):
        return await global_exception_handler(request, exc)
    error = exc.error
    if error.kind is ErrorKind.INTERNAL:
        logger.error("%s %s failed: %s", request.method, request.url.path, error.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, error)
    return error_response(error)


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, RequestValidationError):
        return await global_exception_handler(request, exc)
    fields = [
        FieldError(
            field=".".join(str(loc) for loc in err["loc"] if loc != "body"),
            message=err["msg"],
        )
        for err in exc.errors()
    ]
    logger.info("Validation error on %s: %s", request.url.path, fields)
    return error_response(OrderErrors.validation(*fields))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return error_response(OrderErrors.internal())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderFailure, order_failure_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


__all__ = ("HTTP_STATUS", "unwrap", "error_body", "error_response", "register_exception_handlers")
