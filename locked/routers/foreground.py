"""
Foreground router.

POST /foreground   — report the app now in the foreground; returns the block decision
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from locked.schemas.common import error_responses
from locked.schemas.usage import BlockDecisionResponse, ForegroundObservation
from locked.services.runtime import LockedRuntime, get_runtime

router = APIRouter(prefix="/foreground", tags=["foreground"])


@router.post(
    "",
    response_model=BlockDecisionResponse,
    summary="Decide whether a foreground app is blocked",
    responses=error_responses(503),
)
def on_foreground_app(
    payload: ForegroundObservation,
    runtime: LockedRuntime = Depends(get_runtime),
):
    """
    Entry point for the OS observation collaborator.

    Blocked apps are recorded as usage events and a block command is sent
    to the presenter. Repeats inside the cooldown window report
    `reason="cooldown"` without a new event.
    """
    decision = runtime.gate.on_foreground_app(payload.package_name, payload.observed_at)
    return BlockDecisionResponse.model_validate(decision)
