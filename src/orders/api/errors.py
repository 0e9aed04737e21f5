"""Map domain error kinds onto HTTP status codes."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, InvalidOperationError, ObjectNotFoundError, ValidationError

from orders.errors import AuthorizationError, ConcurrentModificationError, describe

logger = structlog.get_logger(__name__)

_STATUS_CODES = {
    ValidationError: (400, "validation_error"),
    AuthorizationError: (403, "forbidden"),
    ObjectNotFoundError: (404, "not_found"),
    InvalidOperationError: (409, "invalid_operation"),
    ConcurrentModificationError: (409, "concurrent_modification"),
    ExpectedVersionError: (409, "concurrent_modification"),  # lost a save race in another worker
}


def _handler(status_code: int, kind: str):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            error=kind,
        )
        return JSONResponse(status_code=status_code, content={"error": kind, "detail": describe(exc)})

    return handle


def register_error_handlers(app: FastAPI) -> None:
    for exc_class, (status_code, kind) in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code, kind))
