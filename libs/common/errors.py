"""Domain error taxonomy and FastAPI exception handlers.

Services raise these; routers let them propagate and the handlers registered
by ``register_exception_handlers`` render them as
``{"ok": false, "error": <kind>, "message": <text>}``.
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base class for errors that carry a stable kind and an HTTP status."""

    kind: str = "internal"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message or self.kind
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": False,
            "error": self.kind,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class NotFoundError(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidInputError(AppError):
    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class MalformedPayloadError(InvalidInputError):
    kind = "malformed_payload"


class InvalidStateError(AppError):
    kind = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class InvalidSignatureError(AppError):
    kind = "invalid_signature"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class GatewayError(AppError):
    kind = "gateway_error"
    status_code = status.HTTP_502_BAD_GATEWAY


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.info(
        "Request failed: %s",
        exc,
        extra={"extra_fields": {"error_kind": exc.kind, "path": request.url.path}},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"ok": False, "error": "internal", "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
