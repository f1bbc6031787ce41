"""
db/models.py

Tombstone table: one row per account deleted through the proxy.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from gate_proxy.app.db.base import Base


class DeletedAccount(Base):
    """
    Permanent block-list entry for an upstream account.

    Rows are never updated or removed. `email` is stored and compared
    exactly as received from the upstream identity payload.
    """

    __tablename__ = "deleted_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    snapshot_payload: Mapped[str] = mapped_column(Text, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<DeletedAccount(external_user_id={self.external_user_id!r})>"
