"""
Events router (read-only export + retention).

GET  /events          — most recent usage events, newest first
POST /events/purge    — delete events older than a cutoff
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from locked.db.base import get_db
from locked.schemas.usage import (
    EventListResponse,
    PurgeRequest,
    PurgeResponse,
    UsageEventResponse,
)
from locked.services import event_store

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=EventListResponse, summary="Recent usage events")
def list_events(
    limit: int = Query(default=100, ge=1, le=10_000, description="Maximum events to return."),
    db: Session = Depends(get_db),
):
    items = event_store.recent_events(db, limit=limit)
    return EventListResponse(
        total=len(items),
        items=[UsageEventResponse.model_validate(e) for e in items],
    )


@router.post("/purge", response_model=PurgeResponse, summary="Retention purge")
def purge_events(payload: PurgeRequest, db: Session = Depends(get_db)):
    """
    Delete events with `timestamp < cutoff`. Without `cutoff`, everything
    older than `retention_days` (default EVENT_RETENTION_DAYS) goes.
    Irreversible.
    """
    if payload.cutoff is not None:
        deleted = event_store.purge_older_than(db, payload.cutoff)
    else:
        deleted = event_store.purge_expired(db, retention_days=payload.retention_days)
    return PurgeResponse(deleted=deleted)
