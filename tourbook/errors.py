import logging
import re
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config

logger = logging.getLogger(__name__)


class AppError(Exception):
    """An expected failure whose message is safe to show to the caller."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = "fail" if 400 <= status_code < 500 else "error"
        self.is_operational = True


def _error_message(error):
    cause = error.get("ctx", {}).get("error")
    if cause is not None:
        return str(cause)
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{field}: {error['msg']}" if field else error["msg"]


def handle_validation_error(errors):
    messages = [_error_message(error) for error in errors]
    return AppError(f"Invalid input data. {'. '.join(messages)}", 400)


def handle_duplicate_fields(err: DuplicateKeyError):
    details = err.details or {}
    key_value = details.get("keyValue")
    if key_value:
        value = ", ".join(f'"{v}"' for v in key_value.values())
    else:
        match = re.search(r"([\"'])(\\?.)*?\1", str(err))
        value = match.group(0) if match else "value"
    return AppError(f"Duplicate field value: {value}. Please use another value!", 400)


def handle_jwt_error():
    return AppError("Invalid token. Please log in again!", 401)


def handle_jwt_expired():
    return AppError("Your token has expired! Please log in again.", 401)


def normalize_error(exc: Exception):
    """Map known library failures onto operational errors, or return None."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, (ValidationError, RequestValidationError)):
        return handle_validation_error(exc.errors())
    if isinstance(exc, DuplicateKeyError):
        return handle_duplicate_fields(exc)
    if isinstance(exc, ExpiredSignatureError):
        return handle_jwt_expired()
    if isinstance(exc, JWTError):
        return handle_jwt_error()
    return None


def send_dev_error(exc: Exception, error):
    status_code = error.status_code if error else 500
    return JSONResponse(
        status_code=status_code,
        content={
            "status": error.status if error else "error",
            "message": error.message if error else str(exc),
            "error": {"name": type(exc).__name__, "statusCode": status_code, "isOperational": error is not None},
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        },
    )


def send_prod_error(exc: Exception, error):
    if error is not None:
        return JSONResponse(status_code=error.status_code, content={"status": error.status, "message": error.message})
    logger.error("Unexpected error", exc_info=exc)
    return JSONResponse(status_code=500, content={"status": "error", "message": "Something went very wrong!"})


def build_error_response(request: Request, exc: Exception):
    error = normalize_error(exc)
    if config.is_production():
        return send_prod_error(exc, error)
    if error is None:
        logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
    return send_dev_error(exc, error)


async def error_handler(request: Request, exc: Exception):
    return build_error_response(request, exc)


async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return await error_handler(request, AppError(f"Can't find {request.url.path} on this server!", 404))
    return await error_handler(request, AppError(str(exc.detail), exc.status_code))


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return build_error_response(request, AppError("Too many requests from this IP, please try again in an hour!", 429))


def register_error_handlers(app):
    for exc_class in (AppError, ValidationError, RequestValidationError, DuplicateKeyError, JWTError, Exception):
        app.add_exception_handler(exc_class, error_handler)
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
