"""
Matchcore — Profile model.

Profiles are owned by the profile-management subsystem; the matching core
only reads them.  The table lives in the same database so that candidate
search can run as a single filtered query.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from matchcore.database import Base, JSONType
from matchcore.utils.timeutils import utcnow


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    gender: Mapped[str] = mapped_column(String(10), nullable=False, comment="male / female")

    # ── Location ───────────────────────────────────────────────────
    district: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    block: Mapped[str | None] = mapped_column(String(100), nullable=True)
    village: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # ── Background ─────────────────────────────────────────────────
    education: Mapped[str | None] = mapped_column(String(100), nullable=True)
    occupation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    skills: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    sect: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sub_sect: Mapped[str | None] = mapped_column(String(50), nullable=True)
    biradari: Mapped[str | None] = mapped_column(String(50), nullable=True)
    religious_practice: Mapped[str | None] = mapped_column(Text, nullable=True)
    family_background: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    family_type: Mapped[str | None] = mapped_column(
        String(20), nullable=True, comment="nuclear / joint"
    )
    marital_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    profile_picture_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Stated preferences ─────────────────────────────────────────
    looking_for: Mapped[dict | None] = mapped_column(
        JSONType, nullable=True, comment="ageRange, education, occupation, location, sect, ..."
    )
    location_preference: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    education_preference: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    # ── Flags & activity ───────────────────────────────────────────
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_profile_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_active_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    profile_view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Profile user={self.user_id} {self.name!r} district={self.district!r}>"
