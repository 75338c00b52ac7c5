"""
Error taxonomy and the boundary translator

Controllers raise AppError subclasses; the handlers registered here turn
them (and anything unexpected) into the standard response envelope.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError


class AppError(Exception):
    status_code = 500
    error = "Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.error
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    error = "Validation Error"


class ConflictError(AppError):
    status_code = 400
    error = "Conflict"


class NotFoundError(AppError):
    status_code = 404
    error = "Not Found"


class UnauthorizedError(AppError):
    status_code = 401
    error = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    error = "Forbidden"


class InternalError(AppError):
    status_code = 500
    error = "Server Error"


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


def format_validation_errors(errors) -> str:
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return "; ".join(messages) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        return error_response(exc.status_code, exc.error, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(400, ValidationError.error, format_validation_errors(exc.errors()))

    @app.exception_handler(PydanticValidationError)
    async def schema_validation_handler(request: Request, exc: PydanticValidationError):
        return error_response(400, ValidationError.error, format_validation_errors(exc.errors()))

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
        return error_response(400, ConflictError.error, "Duplicate field value entered")

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        logger.opt(exception=exc).error(f"Database error on {request.method} {request.url.path}")
        return error_response(500, InternalError.error, "Database error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled exception on {request.method} {request.url.path}")
        return error_response(500, InternalError.error, "An unexpected error occurred")
