"""
Lock and token router.

GET    /lock            — current state + open session
POST   /lock/toggle     — verified toggle (LOCKED ⇄ UNLOCKED)
POST   /lock/lock       — verified UNLOCKED → LOCKED
POST   /lock/unlock     — verified LOCKED → UNLOCKED
GET    /token           — pairing status
POST   /token/pair      — pair a token (replaces any previous one)
DELETE /token           — unpair
POST   /token/verify    — does this id match the paired token?
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from locked.db.base import get_db
from locked.schemas.common import error_responses
from locked.schemas.lock import (
    LockStatusResponse,
    TokenRequest,
    TokenStatusResponse,
    TokenVerifyResponse,
    TransitionResponse,
)
from locked.schemas.session import BlockingSessionResponse
from locked.services.lock_state import TransitionResult
from locked.services.runtime import LockedRuntime, get_runtime
from locked.services.session_store import current_session

router = APIRouter(tags=["lock"])


def _transition_to_response(result: TransitionResult) -> TransitionResponse:
    result.raise_for_refusal()
    return TransitionResponse(
        state=result.state.value,
        session=BlockingSessionResponse.model_validate(result.session) if result.session else None,
        recovered=result.recovered,
    )


# ---------------------------------------------------------------------------
# Lock
# ---------------------------------------------------------------------------

@router.get("/lock", response_model=LockStatusResponse, summary="Current lock state")
def lock_status(
    runtime: LockedRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    session = current_session(db)
    return LockStatusResponse(
        state=runtime.lock.state.value,
        token_paired=runtime.tokens.is_paired(),
        current_session=BlockingSessionResponse.model_validate(session) if session else None,
    )


@router.post(
    "/lock/toggle",
    response_model=TransitionResponse,
    summary="Toggle the lock with the paired token",
    responses=error_responses(403, 409),
)
def toggle_lock(payload: TokenRequest, runtime: LockedRuntime = Depends(get_runtime)):
    """
    Flip the lock state. The presented token must match the paired token.

    - **403** `TOKEN_NOT_PAIRED` / `TOKEN_MISMATCH` — refused, state unchanged.
    - **409** `INVALID_TRANSITION` — a concurrent toggle won the race.
    - **409** `SESSION_ALREADY_OPEN` — a blocking session was already open
      when locking; this is a consistency bug, do not retry.
    """
    return _transition_to_response(runtime.lock.toggle(payload.token_id))


@router.post(
    "/lock/lock",
    response_model=TransitionResponse,
    summary="Lock and open a blocking session",
    responses=error_responses(403, 409),
)
def lock(payload: TokenRequest, runtime: LockedRuntime = Depends(get_runtime)):
    return _transition_to_response(runtime.lock.lock(payload.token_id))


@router.post(
    "/lock/unlock",
    response_model=TransitionResponse,
    summary="Unlock and close the blocking session",
    responses=error_responses(403, 409),
)
def unlock(payload: TokenRequest, runtime: LockedRuntime = Depends(get_runtime)):
    return _transition_to_response(runtime.lock.unlock(payload.token_id))


# ---------------------------------------------------------------------------
# Token
# ---------------------------------------------------------------------------

def _token_status(runtime: LockedRuntime) -> TokenStatusResponse:
    return TokenStatusResponse(
        paired=runtime.tokens.is_paired(),
        display_id=runtime.tokens.paired_display_id(),
    )


@router.get("/token", response_model=TokenStatusResponse, summary="Pairing status")
def token_status(runtime: LockedRuntime = Depends(get_runtime)):
    return _token_status(runtime)


@router.post(
    "/token/pair",
    response_model=TokenStatusResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pair a token (last write wins)",
)
def pair_token(payload: TokenRequest, runtime: LockedRuntime = Depends(get_runtime)):
    runtime.tokens.pair(payload.token_id)
    return _token_status(runtime)


@router.delete("/token", response_model=TokenStatusResponse, summary="Unpair the token")
def unpair_token(runtime: LockedRuntime = Depends(get_runtime)):
    runtime.tokens.unpair()
    return _token_status(runtime)


@router.post("/token/verify", response_model=TokenVerifyResponse, summary="Verify a token id")
def verify_token(payload: TokenRequest, runtime: LockedRuntime = Depends(get_runtime)):
    return TokenVerifyResponse(matches=runtime.tokens.verify(payload.token_id))
