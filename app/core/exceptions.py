"""
Domain errors raised by the services and the FastAPI handlers that turn
them (and framework errors) into JSON responses.
"""
import logging
from typing import Any, Dict, Optional
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BloodBankError(Exception):
    """Base class for per-operation, caller-recoverable errors."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(BloodBankError):
    """A referenced donor, batch, request, hospital or center does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", {"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(BloodBankError):
    """Requested units exceed the available, non-expired units of a blood type."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, blood_type: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {blood_type}: requested {requested}, available {available}",
            {"blood_type": blood_type, "requested": requested, "available": available},
        )
        self.blood_type = blood_type
        self.requested = requested
        self.available = available


class ValidationError(BloodBankError):
    """Malformed input, rejected before any mutation."""

    status_code = 422


class InvalidTransitionError(ValidationError):
    """A blood request status change that the lifecycle does not allow."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move request from '{current}' to '{target}'",
            {"current": current, "target": target},
        )


class DependencyFailureError(BloodBankError):
    """Persistence or notification collaborator unreachable.

    For writes the outcome is unconfirmed: callers must re-check state
    before retrying.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def blood_bank_exception_handler(request: Request, exc: BloodBankError):
    logger.warning(
        f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}",
        extra={"request_id": getattr(request.state, "request_id", "N/A")}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.__class__.__name__, "detail": exc.message, "context": exc.details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTPException", "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "RequestValidationError", "detail": jsonable_encoder(exc.errors())},
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"request_id": getattr(request.state, "request_id", "N/A")}
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "InternalServerError", "detail": "An unexpected error occurred"},
    )
