# dreamsaver/core/errors.py
"""
Error taxonomy for the goal funding engine.

Services raise these; the handler registered in main.py turns them into
JSON responses of the form {"detail": ..., "code": ...}.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DreamSaverError(Exception):
    """Base class for every domain error."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DreamSaverError):
    """Malformed input, rejected before any write."""

    code = "VALIDATION_ERROR"


class NotFoundError(DreamSaverError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(message)
        self.resource = resource


class ConflictError(DreamSaverError):
    """The operation would violate a goal state invariant."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class IllegalTransitionError(ConflictError):
    code = "ILLEGAL_TRANSITION"


class AuthorizationError(DreamSaverError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "NOT_AUTHORIZED"

    def __init__(self):
        # Never say whether the resource exists
        super().__init__("Not authorized")


class TransientError(DreamSaverError):
    """Storage or gateway hiccup. Retrying the whole operation is safe."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "TRANSIENT_ERROR"


class GatewayError(DreamSaverError):
    """An external service (Stripe, delivery) rejected the request."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "GATEWAY_ERROR"


async def dreamsaver_error_handler(request: Request, exc: DreamSaverError) -> JSONResponse:
    logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    content = {"detail": exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DreamSaverError, dreamsaver_error_handler)
