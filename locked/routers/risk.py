"""
Risk router.

GET /risk                 — rule-based assessment of the current moment
GET /risk/events/{id}     — learned-model score of one recorded event
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from locked.core.errors import EventNotFoundError
from locked.db.base import get_db
from locked.models.usage_event import UsageEvent
from locked.schemas.common import error_responses
from locked.schemas.risk import EventRiskResponse, RiskAssessmentResponse
from locked.services.runtime import LockedRuntime, get_runtime

router = APIRouter(prefix="/risk", tags=["risk"])


@router.get("", response_model=RiskAssessmentResponse, summary="Current unlock risk")
def current_risk(
    runtime: LockedRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    """
    Score how risky unlocking is right now from the 50 most recent events.

    | Level  | Score      |
    |---|---|
    | HIGH   | ≥ 0.7      |
    | MEDIUM | ≥ 0.4      |
    | LOW    | < 0.4      |
    """
    a = runtime.risk.assess(db)
    return RiskAssessmentResponse(
        risk_score=a.risk_score,
        risk_level=a.risk_level.value,
        factors=a.factors,
        recommendation=a.recommendation,
        strategy=a.strategy,
    )


@router.get(
    "/events/{event_id}",
    response_model=EventRiskResponse,
    summary="Model score for one event",
    responses=error_responses(404),
)
def event_risk(
    event_id: int,
    runtime: LockedRuntime = Depends(get_runtime),
    db: Session = Depends(get_db),
):
    event = db.get(UsageEvent, event_id)
    if event is None:
        raise EventNotFoundError(event_id)
    a = runtime.risk.assess_event(event)
    return EventRiskResponse(
        event_id=event.id,
        risk_score=a.risk_score,
        risk_level=a.risk_level.value,
        recommendation=a.recommendation,
        strategy=a.strategy,
        used_fallback=a.strategy == "model_fallback",
        fallback_reason=a.fallback_reason,
    )
