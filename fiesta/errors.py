"""Error taxonomy shared by services and routes.

Services raise these; ``register_error_handlers`` turns them into the
``{"status": "error", "message": ..., "category": ...}`` envelope.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class FiestaError(Exception):
    status_code = 500
    category = "INTERNAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequest(FiestaError):
    status_code = 400
    category = "BAD_REQUEST"


class InvalidCredential(FiestaError):
    status_code = 401
    category = "INVALID_CREDENTIAL"


class AccessDenied(FiestaError):
    status_code = 403
    category = "ACCESS_DENIED"


class ApprovalRequired(FiestaError):
    """Password login for an account that is still waiting on review."""

    status_code = 403
    category = "PENDING_APPROVAL"


class NotFound(FiestaError):
    status_code = 404
    category = "NOT_FOUND"


class Conflict(FiestaError):
    status_code = 409
    category = "CONFLICT"


class AlreadyProcessed(FiestaError):
    status_code = 409
    category = "ALREADY_PROCESSED"


class TournamentFull(FiestaError):
    status_code = 400
    category = "FULL"


class DuplicateEntry(FiestaError):
    status_code = 400
    category = "DUPLICATE"


class InsufficientTeams(FiestaError):
    status_code = 400
    category = "INSUFFICIENT_TEAMS"


class MatchNotCompleted(FiestaError):
    status_code = 400
    category = "NOT_COMPLETED"


class RateLimited(FiestaError):
    status_code = 429
    category = "RATE_LIMITED"


class ProviderNotConfigured(FiestaError):
    status_code = 500
    category = "PROVIDER_NOT_CONFIGURED"


class MailDeliveryFailed(FiestaError):
    status_code = 502
    category = "MAIL_DELIVERY_FAILED"


class ProviderUnavailable(FiestaError):
    status_code = 503
    category = "PROVIDER_UNAVAILABLE"


class RetryableStoreError(FiestaError):
    status_code = 503
    category = "STORE_ERROR"


def error_body(message: str, category: str = None) -> dict:
    body = {"status": "error", "message": message}
    if category:
        body["category"] = category
    return body


async def fiesta_error_handler(request: Request, exc: FiestaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.category),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = error_body("Invalid request", "VALIDATION_ERROR")
    body["errors"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content=body)


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit by %s on %s", request.client.host if request.client else "?", request.url.path)
    return JSONResponse(
        status_code=429,
        content=error_body(f"Too many requests: {exc.detail}", RateLimited.category),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FiestaError, fiesta_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
