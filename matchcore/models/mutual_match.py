"""
Matchcore — Mutual match model.

The pair is stored canonically (``user1_id`` sorts before ``user2_id``) and
``uq_mutual_match_pair`` guarantees at most one row per unordered pair.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from matchcore.database import Base, JSONType
from matchcore.utils.timeutils import utcnow

MATCH_STATUSES = ("active", "contacted", "inactive", "blocked")


class MutualMatch(Base):
    __tablename__ = "mutual_matches"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_mutual_match_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user1_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user2_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    interest1_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("interests.id"), nullable=False
    )
    interest2_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("interests.id"), nullable=False
    )
    ai_match_score: Mapped[float] = mapped_column(Float, nullable=False)
    common_interests: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    match_quality: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="excellent / good / fair / poor"
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="active",
        comment="active / contacted / inactive / blocked",
    )
    is_contact_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    matched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    last_interaction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<MutualMatch {self.user1_id} <-> {self.user2_id} "
            f"score={self.ai_match_score:.0f} status={self.status!r}>"
        )
