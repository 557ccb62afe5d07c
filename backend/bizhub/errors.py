"""
BizHub Ledger — Error taxonomy and the HTTP error envelope.

Every failure a caller can act on is a ``BizHubError`` carrying a stable
``code``, a human ``message``, the HTTP ``status_code`` it maps to, and an
optional ``fields`` dict naming the offending input.  Database errors
(connection loss, serialization conflicts) are *not* wrapped; they propagate
as SQLAlchemy exceptions so callers can retry them.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BizHubError(Exception):
    """Base class for domain errors surfaced to callers."""

    status_code: int = 500
    code: str = "SERVER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        fields: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.fields = fields or {}

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.fields:
            error["fields"] = dict(self.fields)
        return {"success": False, "error": error}


class ValidationError(BizHubError):
    """A required value is missing, empty, or outside its allowed vocabulary."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, *, code: Optional[str] = None):
        super().__init__(message, code=code, fields={field: message} if field else None)
        self.field = field


class NotFoundError(BizHubError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class AlreadyVoidedError(BizHubError):
    """A second void attempt on the same row. Never retry this."""

    status_code = 409
    code = "ALREADY_VOIDED"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} has already been voided")
        self.entity = entity
        self.entity_id = entity_id


class InvoiceStateError(BizHubError):
    """The invoice's status forbids the requested action."""

    status_code = 409
    code = "INVALID_INVOICE_STATE"


class AppendOnlyViolation(BizHubError):
    """Something tried to update or delete an activity log row."""

    status_code = 500
    code = "APPEND_ONLY"


async def bizhub_error_handler(request: Request, exc: BizHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies / params in the same envelope, status 422."""
    fields = {}
    for error in exc.errors():
        # drop the "body" / "query" prefix FastAPI puts on every location
        loc = [str(part) for part in error.get("loc", ())[1:]] or ["request"]
        fields.setdefault(".".join(loc), error.get("msg", "Invalid value"))
    logger.info("%s %s rejected: %s", request.method, request.url.path, fields)
    envelope = BizHubError("Request validation failed", code="VALIDATION_ERROR", fields=fields)
    return JSONResponse(status_code=422, content=envelope.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON envelope handlers to the app."""
    app.add_exception_handler(BizHubError, bizhub_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]
