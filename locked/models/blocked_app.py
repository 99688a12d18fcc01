from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from locked.db.base import Base


class BlockedApp(Base):
    """Per-package block configuration. Absence of a row means not blocked."""

    __tablename__ = "blocked_apps"

    package_name: Mapped[str] = mapped_column(String(256), primary_key=True)
    app_name: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="OTHER")
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    added_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
