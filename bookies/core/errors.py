# bookies/core/errors.py
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from bookies.core.logging import get_logger

logger = get_logger("api.errors")


class LibraryError(Exception):
    """
    Error de dominio. Cada subclase tiene un status HTTP fijo y un título
    ("error") que se devuelve en el cuerpo junto al mensaje.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(LibraryError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Bad Request"


class UnauthorizedError(LibraryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Authentication Failed"


class NotFoundError(LibraryError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"


class ConflictError(LibraryError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class InternalError(LibraryError):
    pass


_REASONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    500: "Internal Server Error",
}


def error_body(status_code: int, message: str, error: str | None = None) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": error or _REASONS.get(status_code, "Error"),
        "message": message,
    }


async def library_error_handler(request: Request, exc: LibraryError):
    logger.warning(
        "request_failed",
        extra={
            "path": request.url.path,
            "status_code": exc.status_code,
            "error": exc.error,
            "reason": exc.message,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, exc.error),
    )


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Pydantic devuelve una lista de errores; mostramos el primero de forma legible
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid value for '{location}': {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid input data"

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(status.HTTP_400_BAD_REQUEST, message),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    # El middleware de request ya deja el stacktrace en el log
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LibraryError, library_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
