"""
Match model - a scored (lost, found) pairing and the state of its handover.
"""

from datetime import datetime

from sqlalchemy import JSON, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from finderguard.db.base import Base, enum_column_type
from finderguard.schemas.enums import ExchangeStatus, MatchStatus


class Match(Base):
    """
    Item ids are plain columns, not foreign keys: once an exchange completes the
    items are deleted and sibling matches simply stop resolving them.
    """

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    lost_item_id: Mapped[int] = mapped_column(nullable=False, index=True)
    found_item_id: Mapped[int] = mapped_column(nullable=False, index=True)
    lost_user_id: Mapped[int] = mapped_column(nullable=False, index=True)
    found_user_id: Mapped[int] = mapped_column(nullable=False, index=True)
    confidence: Mapped[int] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[MatchStatus] = mapped_column(
        enum_column_type(MatchStatus), nullable=False, default=MatchStatus.PENDING
    )
    exchange_status: Mapped[ExchangeStatus] = mapped_column(
        enum_column_type(ExchangeStatus), nullable=False, default=ExchangeStatus.NONE, index=True
    )
    exchange_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exchange_confirmed_by: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, lost={self.lost_item_id}, found={self.found_item_id}, "
            f"confidence={self.confidence}, exchange={self.exchange_status})>"
        )
