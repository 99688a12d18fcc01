"""
Blocking-session records.

open_session(db, now)                    → BlockingSession   (raises if one is open)
close_open_session(db, method, now)      → BlockingSession | None
current_session(db)                      → BlockingSession | None
recent_sessions(db, limit)               → list[BlockingSession]  (newest first)
average_session_duration(db)             → float | None

Callers must serialize open/close; LockStateMachine does so under its lock.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from locked.core.errors import SessionAlreadyOpenError, StorageError
from locked.models.blocking_session import BlockingSession
from locked.services.event_store import now_ms


def current_session(db: Session) -> Optional[BlockingSession]:
    try:
        return (
            db.query(BlockingSession)
            .filter(BlockingSession.end_time.is_(None))
            .order_by(BlockingSession.id)
            .first()
        )
    except SQLAlchemyError as exc:
        raise StorageError("current_session", str(exc)) from exc


def open_session(db: Session, now: Optional[int] = None, method: str = "nfc") -> BlockingSession:
    existing = current_session(db)
    if existing is not None:
        raise SessionAlreadyOpenError(session_id=existing.id, start_time=existing.start_time)

    session = BlockingSession(
        start_time=now if now is not None else now_ms(),
        end_time=None,
        unlock_method=method,
        duration=None,
    )
    try:
        db.add(session)
        db.commit()
        db.refresh(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("open_session", str(exc)) from exc
    return session


def close_open_session(
    db: Session,
    method: str = "nfc",
    now: Optional[int] = None,
) -> Optional[BlockingSession]:
    """Close the open session. Returns None when nothing was open."""
    session = current_session(db)
    if session is None:
        return None

    end = now if now is not None else now_ms()
    try:
        session.end_time = end
        session.unlock_method = method
        session.duration = end - session.start_time
        db.commit()
        db.refresh(session)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("close_open_session", str(exc)) from exc
    return session


def recent_sessions(db: Session, limit: int = 20) -> list[BlockingSession]:
    try:
        return (
            db.query(BlockingSession)
            .order_by(BlockingSession.start_time.desc(), BlockingSession.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageError("recent_sessions", str(exc)) from exc


def average_session_duration(db: Session) -> Optional[float]:
    """Mean duration (ms) of closed sessions."""
    try:
        avg = (
            db.query(func.avg(BlockingSession.duration))
            .filter(BlockingSession.duration.isnot(None))
            .scalar()
        )
    except SQLAlchemyError as exc:
        raise StorageError("average_session_duration", str(exc)) from exc
    return float(avg) if avg is not None else None
