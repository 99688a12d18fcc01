"""
Blocked-app configuration: keyed upsert on package_name.

A package with no row, or with is_blocked=False, is never blocked.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from locked.core.errors import BlockedAppNotFoundError, StorageError
from locked.models.blocked_app import BlockedApp
from locked.models.usage_event import AppCategory
from locked.services.event_store import now_ms

# Substring → category, checked in order.
_CATEGORY_HINTS = (
    ("social", AppCategory.SOCIAL),
    ("game", AppCategory.GAME),
    ("video", AppCategory.VIDEO),
    ("news", AppCategory.NEWS),
)


def category_for_package(package_name: str) -> str:
    """Best-effort category guess from the package name alone."""
    lower = package_name.lower()
    for hint, category in _CATEGORY_HINTS:
        if hint in lower:
            return category.value
    return AppCategory.OTHER.value


def get_blocked_app(db: Session, package_name: str) -> Optional[BlockedApp]:
    try:
        return db.get(BlockedApp, package_name)
    except SQLAlchemyError as exc:
        raise StorageError("get_blocked_app", str(exc)) from exc


def is_blocked(db: Session, package_name: str) -> bool:
    app = get_blocked_app(db, package_name)
    return bool(app and app.is_blocked)


def add_blocked_app(
    db: Session,
    package_name: str,
    app_name: Optional[str] = None,
    category: Optional[str] = None,
) -> BlockedApp:
    """Insert or replace the row for package_name, marked blocked."""
    try:
        app = db.get(BlockedApp, package_name)
        if app is None:
            app = BlockedApp(package_name=package_name)
            db.add(app)
        app.app_name = app_name or package_name
        app.category = (category or category_for_package(package_name)).upper()
        app.is_blocked = True
        app.added_timestamp = now_ms()
        db.commit()
        db.refresh(app)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("add_blocked_app", str(exc)) from exc
    return app


def set_blocked(db: Session, package_name: str, blocked: bool) -> BlockedApp:
    """Flip is_blocked, creating the row if the package is unknown."""
    try:
        app = db.get(BlockedApp, package_name)
        if app is None:
            app = BlockedApp(
                package_name=package_name,
                app_name=package_name,
                category=category_for_package(package_name),
                added_timestamp=now_ms(),
            )
            db.add(app)
        app.is_blocked = blocked
        db.commit()
        db.refresh(app)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("set_blocked", str(exc)) from exc
    return app


def delete_blocked_app(db: Session, package_name: str) -> None:
    """Remove the row entirely. Raises BlockedAppNotFoundError if absent."""
    app = get_blocked_app(db, package_name)
    if app is None:
        raise BlockedAppNotFoundError(package_name)
    try:
        db.delete(app)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("delete_blocked_app", str(exc)) from exc


def list_blocked(db: Session, include_unblocked: bool = False) -> list[BlockedApp]:
    try:
        q = db.query(BlockedApp)
        if not include_unblocked:
            q = q.filter(BlockedApp.is_blocked == True)  # noqa
        return q.order_by(BlockedApp.package_name).all()
    except SQLAlchemyError as exc:
        raise StorageError("list_blocked", str(exc)) from exc
