"""
Matchcore — Interest model (owned by the interest subsystem, read here).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from matchcore.database import Base, JSONType
from matchcore.utils.timeutils import utcnow

INTEREST_STATUSES = ("pending", "accepted", "declined", "withdrawn", "expired")


class Interest(Base):
    __tablename__ = "interests"
    __table_args__ = (
        Index("ix_interests_sender_receiver", "sender_id", "receiver_id"),
        Index("ix_interests_receiver_status", "receiver_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sender_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    receiver_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
        comment="pending / accepted / declined / withdrawn / expired",
    )
    interest_type: Mapped[str] = mapped_column(String(20), nullable=False, default="interest")
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    common_interests: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Interest {self.sender_id} -> {self.receiver_id} status={self.status!r}>"
