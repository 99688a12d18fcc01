"""
Sessions router.

GET /sessions   — recent blocking sessions, newest first
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from locked.db.base import get_db
from locked.schemas.session import BlockingSessionResponse, SessionListResponse
from locked.services import session_store

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=SessionListResponse, summary="Recent blocking sessions")
def list_sessions(
    limit: int = Query(default=20, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    items = session_store.recent_sessions(db, limit=limit)
    return SessionListResponse(
        total=len(items),
        average_duration=session_store.average_session_duration(db),
        items=[BlockingSessionResponse.model_validate(s) for s in items],
    )
