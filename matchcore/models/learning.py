"""
Matchcore — Preference learning models: the per-user learned model plus the
raw interaction and feedback logs it is derived from.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from matchcore.database import Base, JSONType
from matchcore.utils.timeutils import utcnow


class LearningDataRecord(Base):
    __tablename__ = "learning_data"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, index=True, nullable=False
    )
    preferred_age_min: Mapped[int] = mapped_column(Integer, nullable=False)
    preferred_age_max: Mapped[int] = mapped_column(Integer, nullable=False)
    preferred_education: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    preferred_occupations: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    preferred_locations: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    preferred_sects: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    viewed_profiles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_interests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accepted_interests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_compatibility_of_interests: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<LearningDataRecord user={self.user_id} "
            f"age=[{self.preferred_age_min},{self.preferred_age_max}]>"
        )


class UserInteraction(Base):
    __tablename__ = "user_interactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    target_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    interaction_type: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="view / interest / favorite / skip / block"
    )
    context: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<UserInteraction {self.user_id} -> {self.target_user_id} "
            f"type={self.interaction_type!r}>"
        )


class MatchFeedback(Base):
    __tablename__ = "match_feedback"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    match_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    feedback: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="excellent / good / average / poor"
    )
    reasons: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<MatchFeedback {self.user_id} -> {self.match_user_id} {self.feedback!r}>"
