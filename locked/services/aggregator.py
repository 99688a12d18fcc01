"""
Aggregator: daily and session statistics over a snapshot of events.

Pure functions with no DB or clock access. Inputs are any iterable of objects with
`timestamp`, `package_name` and `session_duration` attributes (ORM rows or
plain dataclasses in tests). Snapshots passed to `average_session_duration`
must be ordered most recent first, as returned by `recent_events`.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

# Returned by time_since_most_recent when nothing matched.
NEVER_USED = 2**63 - 1


def daily_launch_count(events: Iterable, package_name: str, day_start: int) -> int:
    return sum(
        1 for e in events
        if e.package_name == package_name and e.timestamp >= day_start
    )


def launches_since(events: Iterable, since: int) -> int:
    """Events of any package at or after `since`."""
    return sum(1 for e in events if e.timestamp >= since)


def average_session_duration(events: Sequence, take: int = 10) -> float:
    """Mean duration (ms) of the `take` most recent events, any package."""
    window = list(events)[:take]
    if not window:
        return 0.0
    return sum(e.session_duration for e in window) / len(window)


def total_screen_time_since(events: Iterable, day_start: int) -> int:
    return sum(e.session_duration for e in events if e.timestamp >= day_start)


def time_since_most_recent(
    events: Iterable,
    package_name: Optional[str],
    now: int,
) -> int:
    """Gap (ms) to the latest matching event. package_name=None matches any."""
    latest = None
    for e in events:
        if package_name is not None and e.package_name != package_name:
            continue
        if latest is None or e.timestamp > latest:
            latest = e.timestamp
    if latest is None:
        return NEVER_USED
    return now - latest
