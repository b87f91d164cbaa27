"""
Global exception handlers: domain errors -> structured JSON responses.

    StoreNotInitializedError   -> 503
    EntityNotFoundError        -> 404
    SnapshotValidationError    -> 422 (with field-level details)
    UnsatisfiableScheduleError -> 409
    StorageError               -> 500
    ValueError                 -> 400
    Exception                  -> 500, no internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from bnpl_tracker.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    SnapshotValidationError,
    StorageError,
    StoreNotInitializedError,
    UnsatisfiableScheduleError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    StoreNotInitializedError: (status.HTTP_503_SERVICE_UNAVAILABLE, "STORE_NOT_READY"),
    EntityNotFoundError: (status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    SnapshotValidationError: (422, "INVALID_SNAPSHOT"),
    UnsatisfiableScheduleError: (status.HTTP_409_CONFLICT, "UNSATISFIABLE_SCHEDULE"),
    StorageError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR"),
}


def _error_body(code: str, message: str, **extra) -> dict:
    return {"error": {"code": code, "message": message, **extra}}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app"""

    @app.exception_handler(DomainException)
    async def domain_error_handler(request: Request, exc: DomainException):
        status_code, code = next(
            (mapped for error_type, mapped in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
            (status.HTTP_500_INTERNAL_SERVER_ERROR, "DOMAIN_ERROR"),
        )
        log = logger.error if status_code >= 500 else logger.warning
        log(f"{type(exc).__name__}: {exc}", extra={"error_code": code, "path": request.url.path})

        if isinstance(exc, StorageError):
            # Driver messages stay in the logs
            return JSONResponse(status_code=status_code, content=_error_body(code, "Storage operation failed"))
        if isinstance(exc, SnapshotValidationError):
            return JSONResponse(
                status_code=status_code,
                content=_error_body(code, str(exc), details=exc.errors),
            )
        return JSONResponse(status_code=status_code, content=_error_body(code, str(exc)))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning(f"Invalid value on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("INVALID_VALUE", str(exc)),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )
