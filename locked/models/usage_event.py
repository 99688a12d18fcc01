"""
UsageEvent — one observed block-relevant occurrence.

Append-only. Rows are never updated by the core; the only delete path is the
retention purge (`purge_older_than`). `sqlite_autoincrement` keeps ids from
being reused after a purge so `id` order stays insertion order.

Times are epoch milliseconds. day_of_week uses 1=Sunday .. 7=Saturday.
"""
import enum

from sqlalchemy import BigInteger, Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from locked.db.base import Base


class AppCategory(str, enum.Enum):
    GAME = "GAME"
    NEWS = "NEWS"
    OTHER = "OTHER"
    PRODUCTIVITY = "PRODUCTIVITY"
    SOCIAL = "SOCIAL"
    VIDEO = "VIDEO"
    BLOCKED = "BLOCKED"


class UsageEvent(Base):
    __tablename__ = "usage_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Temporal
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    hour_of_day: Mapped[int] = mapped_column(Integer, nullable=False)

    # Session
    package_name: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    app_category: Mapped[str] = mapped_column(
        String(32), nullable=False, default=AppCategory.OTHER.value
    )
    session_duration: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    time_since_last_use: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Behavioural aggregates, frozen at write time
    daily_app_launches: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_daily_screen_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    cumulative_daily_screen_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Context
    was_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unlock_attempted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unlock_succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    risk_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
