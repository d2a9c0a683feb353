from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# bt_user_snapshots
# ---------------------------


class BtUserSnapshot(Base):
    """One persisted budget snapshot document per user."""

    __tablename__ = "bt_user_snapshots"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    # Full camelCase snapshot document as written by the application.
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    last_updated: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
