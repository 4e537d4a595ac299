"""
Matchcore — Cached compatibility scores.

Rows are immutable.  A fresh computation after expiry adds a new row rather
than updating the old one; readers take the newest unexpired row.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from matchcore.database import Base, JSONType
from matchcore.utils.timeutils import utcnow


class CompatibilityScoreRecord(Base):
    __tablename__ = "compatibility_scores"
    __table_args__ = (
        Index("ix_compatibility_pair", "user_id", "candidate_user_id", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    candidate_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    overall_score: Mapped[float] = mapped_column(Float, nullable=False)
    confidence_level: Mapped[str] = mapped_column(String(10), nullable=False)
    score_data: Mapped[dict] = mapped_column(
        JSONType, nullable=False, comment="Serialized CompatibilityScore"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CompatibilityScoreRecord {self.user_id} -> {self.candidate_user_id} "
            f"overall={self.overall_score:.1f}>"
        )
