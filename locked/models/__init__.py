from .usage_event import AppCategory, UsageEvent
from .blocked_app import BlockedApp
from .blocking_session import BlockingSession

__all__ = [
    "AppCategory",
    "UsageEvent",
    "BlockedApp",
    "BlockingSession",
]
