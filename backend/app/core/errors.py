"""
Centralized error handling for waitlist/seating failures.
Domain exceptions carry their HTTP status so routes stay thin; the handlers at the bottom
turn them (and FastAPI's own errors) into the {"success": false, "error": ...} shape.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_INTERNAL_ERROR = 500

MSG_UNAUTHORIZED = "Unauthorized"
MSG_ACCESS_DENIED = "Access denied"
MSG_INVALID_REQUEST = "Invalid request data"
MSG_INTERNAL_ERROR = "Internal server error"


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


class WaitlistError(Exception):
    """Base for every error the waitlist core reports to callers."""

    status_code = STATUS_INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(WaitlistError):
    status_code = STATUS_NOT_FOUND


class InvalidTransition(WaitlistError):
    status_code = STATUS_BAD_REQUEST

    def __init__(self, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from {_status_name(from_status)} to {_status_name(to_status)}"
        )


class NoActiveSession(WaitlistError):
    status_code = STATUS_BAD_REQUEST

    def __init__(self, table_id: str):
        self.table_id = table_id
        super().__init__("No active table session")


class PersistenceFailure(WaitlistError):
    status_code = STATUS_INTERNAL_ERROR


class PartialFailure(WaitlistError):
    """Seat taken but a follow-up step (cancelling sibling entries) did not complete."""

    status_code = STATUS_INTERNAL_ERROR


class SeatUnavailable(WaitlistError):
    status_code = STATUS_BAD_REQUEST


class NotInQueue(WaitlistError):
    status_code = STATUS_BAD_REQUEST


class InactiveGames(WaitlistError):
    status_code = STATUS_BAD_REQUEST

    def __init__(self, game_names: list[str]):
        self.game_names = game_names
        super().__init__("One or more games are inactive")


class TableAlreadyOpen(WaitlistError):
    status_code = STATUS_BAD_REQUEST


def _status_name(status) -> str:
    return getattr(status, "value", status) or "none"


# ---------------------------------------------------------------------------
# Handlers: register on the app in main.py
# ---------------------------------------------------------------------------


def _error_body(message: str, **extra) -> dict:
    body = {"success": False, "error": message}
    body.update(extra)
    return body


async def waitlist_error_handler(request: Request, exc: WaitlistError) -> JSONResponse:
    if exc.status_code >= STATUS_INTERNAL_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    extra = {}
    if isinstance(exc, InactiveGames):
        extra["inactive_games"] = exc.game_names
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, **extra))


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=STATUS_BAD_REQUEST,
        content=_error_body(MSG_INVALID_REQUEST, details=details),
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=STATUS_INTERNAL_ERROR, content=_error_body(MSG_INTERNAL_ERROR))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WaitlistError, waitlist_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
