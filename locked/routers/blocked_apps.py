"""
Blocked-apps router.

GET  /blocked-apps                  — list configured apps
POST /blocked-apps                  — add (or replace) a blocked app
PUT  /blocked-apps/{package_name}   — set is_blocked
DELETE /blocked-apps/{package_name} — remove the entry
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from locked.db.base import get_db
from locked.schemas.blocked_app import (
    BlockedAppListResponse,
    BlockedAppRequest,
    BlockedAppResponse,
    SetBlockedRequest,
)
from locked.schemas.common import error_responses
from locked.services import blocked_apps

router = APIRouter(prefix="/blocked-apps", tags=["blocked-apps"])


@router.get("", response_model=BlockedAppListResponse, summary="List blocked apps")
def list_blocked_apps(
    include_unblocked: bool = Query(default=False, description="Also list apps with is_blocked=false."),
    db: Session = Depends(get_db),
):
    items = blocked_apps.list_blocked(db, include_unblocked=include_unblocked)
    return BlockedAppListResponse(
        total=len(items),
        items=[BlockedAppResponse.model_validate(a) for a in items],
    )


@router.post(
    "",
    response_model=BlockedAppResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a blocked app",
)
def add_blocked_app(payload: BlockedAppRequest, db: Session = Depends(get_db)):
    app = blocked_apps.add_blocked_app(
        db,
        package_name=payload.package_name,
        app_name=payload.app_name,
        category=payload.category,
    )
    return BlockedAppResponse.model_validate(app)


@router.put(
    "/{package_name}",
    response_model=BlockedAppResponse,
    summary="Block or unblock an app",
)
def set_blocked(package_name: str, payload: SetBlockedRequest, db: Session = Depends(get_db)):
    app = blocked_apps.set_blocked(db, package_name, payload.is_blocked)
    return BlockedAppResponse.model_validate(app)


@router.delete(
    "/{package_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove an app from the list",
    responses=error_responses(404),
)
def delete_blocked_app(package_name: str, db: Session = Depends(get_db)):
    blocked_apps.delete_blocked_app(db, package_name)
