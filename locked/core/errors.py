"""
Custom exception hierarchy for Locked.

Rule: every error carries a machine-readable `code` string so clients
can branch on it without parsing English messages.

Kinds
-----
  refusal      — TokenNotPairedError, TokenMismatchError, InvalidTransitionError.
                 Recoverable; the lock state is unchanged.
  consistency  — SessionAlreadyOpenError. Caller bug; never retry.
  storage      — StorageError. The embedded store failed an append/read.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class LockedException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UnlockRefusedError(LockedException):
    """Base for refusals of a lock/unlock request. State stays as it was."""
    http_status = status.HTTP_403_FORBIDDEN
    code = "UNLOCK_REFUSED"


class TokenNotPairedError(UnlockRefusedError):
    code = "TOKEN_NOT_PAIRED"

    def __init__(self):
        super().__init__(message="No token is paired. Pair a token before toggling the lock.")


class TokenMismatchError(UnlockRefusedError):
    code = "TOKEN_MISMATCH"

    def __init__(self):
        super().__init__(message="Presented token does not match the paired token.")


class InvalidTransitionError(UnlockRefusedError):
    http_status = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"

    def __init__(self, state: str, requested: str):
        super().__init__(
            message=f"Cannot move to {requested}: lock is already {state}.",
            details={"state": state, "requested": requested},
        )


class SessionAlreadyOpenError(LockedException):
    """A blocking session is already open; opening another would break the invariant."""
    http_status = status.HTTP_409_CONFLICT
    code = "SESSION_ALREADY_OPEN"

    def __init__(self, session_id: int, start_time: int):
        super().__init__(
            message=f"Blocking session {session_id} is still open.",
            details={"session_id": session_id, "start_time": start_time},
        )


class EventNotFoundError(LockedException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "EVENT_NOT_FOUND"

    def __init__(self, event_id: int):
        super().__init__(
            message=f"Usage event {event_id} does not exist.",
            details={"event_id": event_id},
        )


class BlockedAppNotFoundError(LockedException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "BLOCKED_APP_NOT_FOUND"

    def __init__(self, package_name: str):
        super().__init__(
            message=f"No blocked-app entry for '{package_name}'.",
            details={"package_name": package_name},
        )


class StorageError(LockedException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_ERROR"

    def __init__(self, operation: str, reason: str | None = None):
        super().__init__(
            message=f"Storage operation '{operation}' failed.",
            details={"operation": operation, "reason": reason} if reason else {"operation": operation},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def locked_exception_handler(request: Request, exc: LockedException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
