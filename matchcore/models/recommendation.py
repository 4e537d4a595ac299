"""
Matchcore — Generated recommendations and recommendation-session analytics.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from matchcore.database import Base, JSONType
from matchcore.utils.timeutils import utcnow


class MatchRecommendationRecord(Base):
    __tablename__ = "match_recommendations"
    __table_args__ = (
        Index("ix_recommendations_user_generated", "user_id", "generated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    candidate_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    compatibility_score: Mapped[float] = mapped_column(Float, nullable=False)
    compatibility_data: Mapped[dict] = mapped_column(
        JSONType, nullable=False, comment="Serialized CompatibilityScore"
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, comment="high / medium / low")
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<MatchRecommendationRecord {self.user_id} -> {self.candidate_user_id} "
            f"score={self.compatibility_score:.1f}>"
        )


class RecommendationSession(Base):
    __tablename__ = "recommendation_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    session_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recommendation_count: Mapped[int] = mapped_column(Integer, nullable=False)
    average_compatibility: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<RecommendationSession user={self.user_id} "
            f"type={self.session_type!r} count={self.recommendation_count}>"
        )
