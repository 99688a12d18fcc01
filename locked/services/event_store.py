"""
Event store: append-only log of usage events.

Public API
----------
record_event(db, package_name, app_name, category, ...)  → UsageEvent
recent_events(db, limit)                                → list[UsageEvent]  (newest first)
events_since(db, start_ms)                              → list[UsageEvent]
events_between(db, start_ms, end_ms)                    → list[UsageEvent]
purge_older_than(db, cutoff_ms)                         → int   (rows deleted)
purge_expired(db, retention_days)                       → int
average_package_duration(db, package_name)              → float | None

Day boundaries are local wall-clock midnight, not UTC. Every derived field of
a new event is computed from the same-day rows stamped at or before it, so a
record is frozen at write time and never updated afterwards.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from locked.core.config import settings
from locked.core.errors import StorageError
from locked.models.usage_event import AppCategory, UsageEvent
from locked.services import aggregator

logger = logging.getLogger(__name__)

MS_PER_MINUTE = 60 * 1000
MS_PER_DAY = 24 * 60 * MS_PER_MINUTE


# ---------------------------------------------------------------------------
# Local-time helpers
# ---------------------------------------------------------------------------

def now_ms() -> int:
    return int(time.time() * 1000)


def _local(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000)


def local_day_start_ms(ms: int) -> int:
    """Epoch ms of the local midnight that starts the day containing `ms`."""
    midnight = _local(ms).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def day_of_week(ms: int) -> int:
    """1=Sunday .. 7=Saturday."""
    return _local(ms).isoweekday() % 7 + 1


def hour_of_day(ms: int) -> int:
    return _local(ms).hour


def _category_value(category) -> str:
    value = category.value if hasattr(category, "value") else str(category)
    value = value.upper()
    if value not in AppCategory.__members__:
        return AppCategory.OTHER.value
    return value


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def record_event(
    db: Session,
    package_name: str,
    app_name: str,
    category,
    session_duration: int = 0,
    was_blocked: bool = False,
    unlock_attempted: bool = False,
    unlock_succeeded: bool = False,
    now: Optional[int] = None,
) -> UsageEvent:
    """
    Derive the daily aggregates for `package_name`, append the event and commit.

    Raises StorageError when the read or the append fails; the session is
    rolled back first.
    """
    ts = now if now is not None else now_ms()
    day_start = local_day_start_ms(ts)

    try:
        # Timestamps may arrive out of order: only same-day rows stamped at or
        # before ts count as prior.
        prior = events_between(db, day_start, ts)
        launches = aggregator.daily_launch_count(prior, package_name, day_start)
        since_last = aggregator.time_since_most_recent(prior, package_name, ts)
        if since_last == aggregator.NEVER_USED:
            since_last = 0
        total_today = aggregator.total_screen_time_since(prior, day_start)

        event = UsageEvent(
            timestamp=ts,
            day_of_week=day_of_week(ts),
            hour_of_day=hour_of_day(ts),
            package_name=package_name,
            app_category=_category_value(category),
            session_duration=session_duration,
            time_since_last_use=since_last,
            daily_app_launches=launches + 1,
            total_daily_screen_time=total_today,
            cumulative_daily_screen_time=total_today + session_duration,
            was_blocked=was_blocked,
            unlock_attempted=unlock_attempted,
            unlock_succeeded=unlock_succeeded,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("record_event", str(exc)) from exc

    logger.debug(
        "Recorded event id=%s package=%s (%s) launches=%s",
        event.id, package_name, app_name, event.daily_app_launches,
    )
    return event


def purge_older_than(db: Session, cutoff_ms: int) -> int:
    """Delete every event with timestamp < cutoff_ms in one statement."""
    try:
        result = db.execute(delete(UsageEvent).where(UsageEvent.timestamp < cutoff_ms))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("purge_older_than", str(exc)) from exc
    deleted = result.rowcount or 0
    logger.info("Purged %d usage events older than %d", deleted, cutoff_ms)
    return deleted


def purge_expired(
    db: Session,
    retention_days: Optional[int] = None,
    now: Optional[int] = None,
) -> int:
    days = retention_days if retention_days is not None else settings.EVENT_RETENTION_DAYS
    ts = now if now is not None else now_ms()
    return purge_older_than(db, ts - days * MS_PER_DAY)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def recent_events(db: Session, limit: int = 100) -> list[UsageEvent]:
    """Most recent first, capped at `limit`."""
    try:
        return (
            db.query(UsageEvent)
            .order_by(UsageEvent.timestamp.desc(), UsageEvent.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageError("recent_events", str(exc)) from exc


def events_since(db: Session, start_ms: int) -> list[UsageEvent]:
    try:
        return (
            db.query(UsageEvent)
            .filter(UsageEvent.timestamp >= start_ms)
            .order_by(UsageEvent.id)
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageError("events_since", str(exc)) from exc


def events_between(db: Session, start_ms: int, end_ms: int) -> list[UsageEvent]:
    """Events with start_ms <= timestamp <= end_ms, in insertion order."""
    try:
        return (
            db.query(UsageEvent)
            .filter(UsageEvent.timestamp >= start_ms, UsageEvent.timestamp <= end_ms)
            .order_by(UsageEvent.id)
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageError("events_between", str(exc)) from exc


def average_package_duration(db: Session, package_name: str) -> Optional[float]:
    """Mean session_duration (ms) over every stored event of one package."""
    try:
        avg = (
            db.query(func.avg(UsageEvent.session_duration))
            .filter(UsageEvent.package_name == package_name)
            .scalar()
        )
    except SQLAlchemyError as exc:
        raise StorageError("average_package_duration", str(exc)) from exc
    return float(avg) if avg is not None else None

