"""
BlockingSession — one contiguous LOCKED interval.

end_time NULL means the session is open. At most one open row exists at any
time; the lock state machine is the only writer.
"""
from typing import Optional

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from locked.db.base import Base


class BlockingSession(Base):
    __tablename__ = "blocking_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    end_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    unlock_method: Mapped[str] = mapped_column(
        String(32), nullable=False, default="nfc",
        comment='"nfc", "override", ...',
    )
    duration: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True,
        comment="end_time - start_time once closed",
    )

    @property
    def is_open(self) -> bool:
        return self.end_time is None
