"""Map the error taxonomy onto HTTP responses.

Protean's own handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404); the handlers below add the marketplace errors.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import (
    Forbidden,
    PaymentSessionError,
    StockConflict,
    WebhookPayloadError,
    WebhookSignatureError,
)

logger = structlog.get_logger(__name__)

_STATUS_CODES = {
    Forbidden: 403,
    StockConflict: 409,
    PaymentSessionError: 502,
    WebhookSignatureError: 400,
    WebhookPayloadError: 400,
}

# Protean's message names the aggregate and its versions
CONCURRENT_UPDATE_MESSAGE = "The record was changed by another request, please retry"


def _handler(status_code: int, message: str | None = None):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            status_code=status_code,
            error_type=type(exc).__name__,
        )
        return JSONResponse(status_code=status_code, content={"error": message or str(exc)})

    return handle


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code))
    app.add_exception_handler(ExpectedVersionError, _handler(409, CONCURRENT_UPDATE_MESSAGE))
