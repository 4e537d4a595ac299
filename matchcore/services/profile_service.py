"""
Matchcore — Profile Provider

Read-only access to the profile directory: single lookups, filtered
candidate search, and the stated preferences carried on a profile.  Store
errors are raised as ``DependencyFailure`` because every caller treats a
profile read as essential.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.exceptions import DependencyFailure, NotFoundError
from matchcore.models.profile import Profile
from matchcore.schemas.preferences import UserPreferences
from matchcore.schemas.profile import ProfileSearchFilters, ProfileSearchResult

logger = structlog.get_logger("matchcore.services.profile")


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


class ProfileService:
    """Profile Provider backed by the ``profiles`` table."""

    async def get_profile(self, user_id: uuid.UUID, db_session: AsyncSession) -> Profile | None:
        try:
            result = await db_session.execute(
                select(Profile).where(Profile.user_id == user_id)
            )
        except SQLAlchemyError as exc:
            logger.error("profile_lookup_failed", user_id=str(user_id), error=str(exc))
            raise DependencyFailure("profile_store", str(exc)) from exc
        return result.scalar_one_or_none()

    async def require_profile(self, user_id: uuid.UUID, db_session: AsyncSession) -> Profile:
        profile = await self.get_profile(user_id, db_session)
        if profile is None:
            raise NotFoundError("Profile", user_id)
        return profile

    async def search_profiles(
        self,
        filters: ProfileSearchFilters,
        db_session: AsyncSession,
    ) -> ProfileSearchResult:
        """Run a filtered, paginated profile search.

        Returns the page of profiles, the total number of matches and
        whether more pages remain.
        """
        conditions = []
        if filters.gender:
            conditions.append(Profile.gender == filters.gender)
        if filters.min_age is not None:
            conditions.append(Profile.age >= filters.min_age)
        if filters.max_age is not None:
            conditions.append(Profile.age <= filters.max_age)
        if filters.districts:
            conditions.append(Profile.district.in_(filters.districts))
        if filters.education_levels:
            conditions.append(Profile.education.in_(filters.education_levels))
        if filters.sects:
            conditions.append(Profile.sect.in_(filters.sects))
        if filters.occupations:
            conditions.append(Profile.occupation.in_(filters.occupations))
        if filters.marital_status:
            conditions.append(Profile.marital_status.in_(filters.marital_status))
        if filters.is_verified is not None:
            conditions.append(Profile.is_verified == filters.is_verified)
        if filters.is_active is not None:
            conditions.append(Profile.is_active == filters.is_active)
        if filters.has_photo is True:
            conditions.append(Profile.profile_picture_id.is_not(None))
        elif filters.has_photo is False:
            conditions.append(Profile.profile_picture_id.is_(None))
        if filters.exclude_user_ids:
            conditions.append(Profile.user_id.not_in(filters.exclude_user_ids))
        if filters.active_since is not None:
            conditions.append(Profile.last_active_at >= filters.active_since)

        if filters.order_by == "created":
            order = (Profile.created_at.desc(), Profile.id)
        else:
            order = (Profile.last_active_at.desc().nulls_last(), Profile.id)

        try:
            total = await db_session.scalar(
                select(func.count()).select_from(Profile).where(*conditions)
            )
            result = await db_session.execute(
                select(Profile)
                .where(*conditions)
                .order_by(*order)
                .limit(filters.limit)
                .offset(filters.offset)
            )
        except SQLAlchemyError as exc:
            logger.error("profile_search_failed", error=str(exc))
            raise DependencyFailure("profile_store", str(exc)) from exc

        profiles = list(result.scalars().all())
        total = total or 0
        logger.debug("profile_search", total=total, returned=len(profiles))
        return ProfileSearchResult(
            profiles=profiles,
            total=total,
            has_more=filters.offset + len(profiles) < total,
        )

    @staticmethod
    def get_preferences(profile: Profile) -> UserPreferences:
        """Derive explicit partner preferences from the profile.

        A profile without ``looking_for`` states no preferences at all, so
        nothing narrows its candidate search.  Otherwise locations default
        to the profile's own district and sects to its own sect.
        """
        looking_for = profile.looking_for
        if not looking_for:
            return UserPreferences()
        age_range = looking_for.get("age_range") or {}

        return UserPreferences(
            age_min=age_range.get("min"),
            age_max=age_range.get("max"),
            locations=(
                _as_list(profile.location_preference)
                or _as_list(looking_for.get("location"))
                or _as_list(profile.district)
            ),
            education=(
                _as_list(profile.education_preference)
                or _as_list(looking_for.get("education"))
            ),
            sects=_as_list(looking_for.get("sect")) or _as_list(profile.sect),
            occupations=_as_list(looking_for.get("occupation")),
            marital_status=_as_list(looking_for.get("marital_status")) or ["single"],
            family_type=looking_for.get("family_type"),
            must_have_photo=bool(looking_for.get("must_have_photo", False)),
            verified_only=bool(looking_for.get("verified_only", False)),
        )
