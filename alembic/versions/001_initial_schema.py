"""Initial schema — all 10 matching-core tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ── 1. profiles (owned by the profile subsystem) ────────────────
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("age", sa.Integer, nullable=False),
        sa.Column("gender", sa.String(10), nullable=False, comment="male / female"),
        sa.Column("district", sa.String(100), nullable=False),
        sa.Column("block", sa.String(100), nullable=True),
        sa.Column("village", sa.String(100), nullable=True),
        sa.Column("education", sa.String(100), nullable=True),
        sa.Column("occupation", sa.String(100), nullable=True),
        sa.Column("skills", postgresql.JSONB, nullable=True),
        sa.Column("sect", sa.String(50), nullable=True),
        sa.Column("sub_sect", sa.String(50), nullable=True),
        sa.Column("biradari", sa.String(50), nullable=True),
        sa.Column("religious_practice", sa.Text, nullable=True),
        sa.Column("family_background", sa.Text, nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("family_type", sa.String(20), nullable=True, comment="nuclear / joint"),
        sa.Column("marital_status", sa.String(20), nullable=True),
        sa.Column("profile_picture_id", sa.String(255), nullable=True),
        sa.Column("looking_for", postgresql.JSONB, nullable=True),
        sa.Column("location_preference", postgresql.JSONB, nullable=True),
        sa.Column("education_preference", postgresql.JSONB, nullable=True),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_profile_complete", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profile_view_count", sa.Integer, nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)
    op.create_index("ix_profiles_district", "profiles", ["district"])

    # ── 2. interests (owned by the interest subsystem) ──────────────
    op.create_table(
        "interests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("receiver_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("interest_type", sa.String(20), nullable=False, server_default="interest"),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("common_interests", postgresql.JSONB, nullable=True),
        _created_at("sent_at"),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_interests_sender_receiver", "interests", ["sender_id", "receiver_id"])
    op.create_index("ix_interests_receiver_status", "interests", ["receiver_id", "status"])

    # ── 3. compatibility_scores ─────────────────────────────────────
    op.create_table(
        "compatibility_scores",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("candidate_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("overall_score", sa.Float, nullable=False),
        sa.Column("confidence_level", sa.String(10), nullable=False),
        sa.Column("score_data", postgresql.JSONB, nullable=False),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_compatibility_pair",
        "compatibility_scores",
        ["user_id", "candidate_user_id", "expires_at"],
    )

    # ── 4. learning_data ────────────────────────────────────────────
    op.create_table(
        "learning_data",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("preferred_age_min", sa.Integer, nullable=False),
        sa.Column("preferred_age_max", sa.Integer, nullable=False),
        sa.Column("preferred_education", postgresql.JSONB, nullable=False),
        sa.Column("preferred_occupations", postgresql.JSONB, nullable=False),
        sa.Column("preferred_locations", postgresql.JSONB, nullable=False),
        sa.Column("preferred_sects", postgresql.JSONB, nullable=False),
        sa.Column("viewed_profiles", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sent_interests", sa.Integer, nullable=False, server_default="0"),
        sa.Column("accepted_interests", sa.Integer, nullable=False, server_default="0"),
        sa.Column("average_compatibility_of_interests", sa.Float, nullable=False, server_default="0"),
        _created_at("last_updated"),
    )
    op.create_index("ix_learning_data_user_id", "learning_data", ["user_id"], unique=True)

    # ── 5. user_interactions ────────────────────────────────────────
    op.create_table(
        "user_interactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("target_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("interaction_type", sa.String(20), nullable=False),
        sa.Column("context", postgresql.JSONB, nullable=True),
        _created_at(),
    )
    op.create_index("ix_user_interactions_user_id", "user_interactions", ["user_id"])

    # ── 6. match_feedback ───────────────────────────────────────────
    op.create_table(
        "match_feedback",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("match_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("feedback", sa.String(20), nullable=False),
        sa.Column("reasons", postgresql.JSONB, nullable=True),
        _created_at(),
    )
    op.create_index("ix_match_feedback_user_id", "match_feedback", ["user_id"])

    # ── 7. match_recommendations ────────────────────────────────────
    op.create_table(
        "match_recommendations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("candidate_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("compatibility_score", sa.Float, nullable=False),
        sa.Column("compatibility_data", postgresql.JSONB, nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        _created_at("generated_at"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_recommendations_user_generated",
        "match_recommendations",
        ["user_id", "generated_at"],
    )

    # ── 8. recommendation_sessions ──────────────────────────────────
    op.create_table(
        "recommendation_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("session_type", sa.String(20), nullable=False),
        sa.Column("recommendation_count", sa.Integer, nullable=False),
        sa.Column("average_compatibility", sa.Float, nullable=False),
        _created_at(),
    )
    op.create_index("ix_recommendation_sessions_user_id", "recommendation_sessions", ["user_id"])

    # ── 9. mutual_matches ───────────────────────────────────────────
    op.create_table(
        "mutual_matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user1_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user2_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "interest1_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("interests.id"),
            nullable=False,
        ),
        sa.Column(
            "interest2_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("interests.id"),
            nullable=False,
        ),
        sa.Column("ai_match_score", sa.Float, nullable=False),
        sa.Column("common_interests", postgresql.JSONB, nullable=False),
        sa.Column("match_quality", sa.String(10), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column("is_contact_shared", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at("matched_at"),
        sa.Column("last_interaction_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_mutual_match_pair"),
    )

    # ── 10. notifications ───────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="normal"),
        sa.Column("payload", postgresql.JSONB, nullable=True),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    # Drop in reverse order (dependents first).
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_table("mutual_matches")

    op.drop_index("ix_recommendation_sessions_user_id", table_name="recommendation_sessions")
    op.drop_table("recommendation_sessions")

    op.drop_index("ix_recommendations_user_generated", table_name="match_recommendations")
    op.drop_table("match_recommendations")

    op.drop_index("ix_match_feedback_user_id", table_name="match_feedback")
    op.drop_table("match_feedback")

    op.drop_index("ix_user_interactions_user_id", table_name="user_interactions")
    op.drop_table("user_interactions")

    op.drop_index("ix_learning_data_user_id", table_name="learning_data")
    op.drop_table("learning_data")

    op.drop_index("ix_compatibility_pair", table_name="compatibility_scores")
    op.drop_table("compatibility_scores")

    op.drop_index("ix_interests_receiver_status", table_name="interests")
    op.drop_index("ix_interests_sender_receiver", table_name="interests")
    op.drop_table("interests")

    op.drop_index("ix_profiles_district", table_name="profiles")
    op.drop_index("ix_profiles_user_id", table_name="profiles")
    op.drop_table("profiles")
