"""
Matchcore — RecommendationEngine

Orchestrates the personalised recommendation pipeline:

1. Load the requester's profile (essential), stated preferences and
   learning data (absent means empty).
2. Build effective search filters: stated preferences, widened by learned
   ranges and sets, then overridden/extended by caller filters.
3. Over-fetch opposite-gender, active candidates (``CANDIDATE_OVERFETCH_FACTOR``
   times the limit) and drop the requester.
4. Score every candidate: fresh cached scores are reused, misses are sent to
   the oracle concurrently (bounded by ``SCORING_CONCURRENCY``).  A candidate
   that fails to score is excluded, never fatal.
5. Drop scores under the recommendation threshold and rank by score plus
   learning-based bonuses.
6. Persist the whole qualified batch (non-critical) and return the top
   ``limit``.

Trending matches are a separate, scoring-free surface ranked on recent
activity and profile views.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.config import get_settings
from matchcore.exceptions import DependencyFailure
from matchcore.models.profile import Profile
from matchcore.models.recommendation import MatchRecommendationRecord, RecommendationSession
from matchcore.schemas.compatibility import CompatibilityScore
from matchcore.schemas.preferences import LearningData, RecommendationFilters, UserPreferences
from matchcore.schemas.profile import ProfileSearchFilters, ProfileSummary
from matchcore.schemas.recommendation import MatchRecommendation, TrendingMatch
from matchcore.services import compatibility_rules as rules
from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.preference_learner import PreferenceLearner
from matchcore.services.profile_service import ProfileService
from matchcore.utils.timeutils import ensure_utc, utcnow

logger = structlog.get_logger("matchcore.services.recommendation")

DEFAULT_LIMIT = 20
MAX_SEARCH_LIMIT = 100

AVERAGE_PROXIMITY_BONUS = 5.0
AVERAGE_PROXIMITY_POINTS = 10.0
ACCEPT_RATE_BONUS = 3.0
ACCEPT_RATE_THRESHOLD = 0.3
ACCEPT_RATE_MIN_SCORE = 80.0

MAX_VIEW_POINTS = 100.0
VIEWS_PER_POINT = 5


def _opposite_gender(gender: str | None) -> str | None:
    return {"male": "female", "female": "male"}.get((gender or "").lower())


def _union(*groups: list | None) -> list:
    merged: list = []
    for group in groups:
        for item in group or []:
            if item and item not in merged:
                merged.append(item)
    return merged


class RecommendationEngine:
    """Personalised, cached, learning-aware candidate ranking."""

    def __init__(
        self,
        profile_service: ProfileService,
        compatibility_scorer: CompatibilityScorer,
        preference_learner: PreferenceLearner,
    ) -> None:
        settings = get_settings()
        self._profiles = profile_service
        self._scorer = compatibility_scorer
        self._learner = preference_learner

        self._min_score = settings.MIN_RECOMMENDATION_SCORE
        self._overfetch = settings.CANDIDATE_OVERFETCH_FACTOR
        self._concurrency = settings.SCORING_CONCURRENCY
        self._ttl = timedelta(days=settings.RECOMMENDATION_TTL_DAYS)
        self._cached_limit = settings.CACHED_RECOMMENDATIONS_LIMIT
        self._trending_window = timedelta(days=settings.TRENDING_WINDOW_DAYS)

        logger.info(
            "recommendation_engine_initialised",
            min_score=self._min_score,
            overfetch=self._overfetch,
            concurrency=self._concurrency,
        )

    # ── Public API ────────────────────────────────────────────────────

    async def get_personalized_recommendations(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        limit: int = DEFAULT_LIMIT,
        filters: RecommendationFilters | None = None,
        session_type: str = "personalized",
    ) -> list[MatchRecommendation]:
        """Generate, persist and return up to ``limit`` recommendations.

        Parameters
        ----------
        user_id:
            The requesting user.
        db_session:
            Active async session.
        limit:
            Maximum number of recommendations returned.
        filters:
            Optional caller filters; they override or extend the filters
            derived from stated and learned preferences.

        Returns
        -------
        list[MatchRecommendation]
            Never includes ``user_id`` itself; every item scores at least
            the recommendation threshold.

        Raises
        ------
        NotFoundError
            If the requester has no profile.
        DependencyFailure
            If the profile or candidate read fails.
        """
        log = logger.bind(user_id=str(user_id), limit=limit)
        filters = filters or RecommendationFilters()

        user = await self._profiles.require_profile(user_id, db_session)
        preferences = self._profiles.get_preferences(user)
        learning = await self._load_learning_data(user_id, db_session)

        search = self._build_search_filters(user, preferences, learning, filters, limit)
        found = await self._profiles.search_profiles(search, db_session)
        candidates = [p for p in found.profiles if p.user_id != user.user_id]
        log.info("candidates_fetched", candidates=len(candidates), total=found.total)

        if not candidates:
            return []

        scores = await self._score_candidates(user, candidates, preferences, db_session)

        threshold = max(self._min_score, filters.min_compatibility_score or 0.0)
        qualified = [s for s in scores if s.overall_score >= threshold]

        ranked = sorted(
            qualified,
            key=lambda s: (s.overall_score + self._learning_bonus(s.overall_score, learning), s.overall_score),
            reverse=True,
        )

        by_id = {p.user_id: p for p in candidates}
        now = utcnow()
        recommendations = [
            MatchRecommendation(
                user_id=user_id,
                candidate_user_id=score.candidate_user_id,
                compatibility=score,
                reason=rules.generate_recommendation_reason(score),
                priority=rules.determine_priority(score.overall_score),
                generated_at=now,
                expires_at=now + self._ttl,
                candidate=ProfileSummary.model_validate(by_id[score.candidate_user_id]),
            )
            for score in ranked
        ]

        await self._store_recommendations(user_id, recommendations, db_session)
        await self._store_session(user_id, session_type, recommendations, db_session)

        log.info(
            "recommendations_generated",
            scored=len(scores),
            qualified=len(qualified),
            returned=min(limit, len(recommendations)),
        )
        return recommendations[:limit]

    async def get_cached_recommendations(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        max_age_hours: float = 24,
    ) -> list[MatchRecommendation]:
        """Previously generated recommendations younger than ``max_age_hours``."""
        cutoff = utcnow() - timedelta(hours=max_age_hours)
        return await self._list_records(
            db_session,
            MatchRecommendationRecord.user_id == user_id,
            MatchRecommendationRecord.generated_at > cutoff,
            limit=self._cached_limit,
        )

    async def get_active_recommendations(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        limit: int = 10,
    ) -> list[MatchRecommendation]:
        """Unexpired recommendations, best first."""
        return await self._list_records(
            db_session,
            MatchRecommendationRecord.user_id == user_id,
            MatchRecommendationRecord.expires_at > utcnow(),
            limit=limit,
        )

    async def refresh_recommendations(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        limit: int = DEFAULT_LIMIT,
    ) -> list[MatchRecommendation]:
        """Clear the user's stored recommendations and regenerate them."""
        result = await db_session.execute(
            delete(MatchRecommendationRecord).where(MatchRecommendationRecord.user_id == user_id)
        )
        logger.info("recommendations_cleared", user_id=str(user_id), removed=result.rowcount)
        return await self.get_personalized_recommendations(
            user_id, db_session, limit=limit, session_type="refresh"
        )

    async def get_trending_matches(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        limit: int = 10,
    ) -> list[TrendingMatch]:
        """Opposite-gender, active, verified profiles ranked by recent activity.

        The activity score adds up to 100 points for recency within the
        trending window and up to 100 points for profile views.
        """
        user = await self._profiles.require_profile(user_id, db_session)
        now = utcnow()

        found = await self._profiles.search_profiles(
            ProfileSearchFilters(
                gender=_opposite_gender(user.gender),
                is_verified=True,
                is_active=True,
                active_since=now - self._trending_window,
                exclude_user_ids=[user.user_id],
                limit=min(limit * self._overfetch, MAX_SEARCH_LIMIT),
            ),
            db_session,
        )

        trending = [
            TrendingMatch(
                profile=ProfileSummary.model_validate(p),
                activity_score=round(self._activity_score(p, now), 2),
            )
            for p in found.profiles
            if p.user_id != user.user_id
        ]
        trending.sort(key=lambda t: t.activity_score, reverse=True)
        return trending[:limit]

    # ── Filter construction & ranking ─────────────────────────────────

    def _build_search_filters(
        self,
        user: Profile,
        preferences: UserPreferences,
        learning: LearningData | None,
        filters: RecommendationFilters,
        limit: int,
    ) -> ProfileSearchFilters:
        min_age = preferences.age_min
        max_age = preferences.age_max
        districts = list(preferences.locations)
        education = list(preferences.education)
        sects = list(preferences.sects)

        if learning is not None:
            min_age = learning.preferred_age_min if min_age is None else min(min_age, learning.preferred_age_min)
            max_age = learning.preferred_age_max if max_age is None else max(max_age, learning.preferred_age_max)
            districts = _union(districts, learning.preferred_locations)
            education = _union(education, learning.preferred_education)
            sects = _union(sects, learning.preferred_sects)

        verified_only = preferences.verified_only
        has_photo = preferences.must_have_photo

        # Caller filters win over everything derived above.
        if filters.min_age is not None:
            min_age = filters.min_age
        if filters.max_age is not None:
            max_age = filters.max_age
        if filters.districts:
            districts = list(filters.districts)
        if filters.education_levels:
            education = list(filters.education_levels)
        if filters.sects:
            sects = list(filters.sects)
        if filters.verified_only is not None:
            verified_only = filters.verified_only
        if filters.has_photo_only is not None:
            has_photo = filters.has_photo_only

        return ProfileSearchFilters(
            gender=_opposite_gender(user.gender),
            min_age=min_age,
            max_age=max_age,
            districts=districts,
            education_levels=education,
            sects=sects,
            occupations=list(filters.occupations),
            is_verified=True if verified_only else None,
            is_active=True,
            has_photo=True if has_photo else None,
            exclude_user_ids=_union([user.user_id], filters.exclude_user_ids),
            limit=min(limit * self._overfetch, MAX_SEARCH_LIMIT),
        )

    @staticmethod
    def _learning_bonus(score: float, learning: LearningData | None) -> float:
        if learning is None:
            return 0.0
        bonus = 0.0
        average = learning.average_compatibility_of_interests
        if average > 0 and abs(score - average) < AVERAGE_PROXIMITY_POINTS:
            bonus += AVERAGE_PROXIMITY_BONUS
        if learning.accept_rate > ACCEPT_RATE_THRESHOLD and score >= ACCEPT_RATE_MIN_SCORE:
            bonus += ACCEPT_RATE_BONUS
        return bonus

    def _activity_score(self, profile: Profile, now: datetime) -> float:
        last_active = ensure_utc(profile.last_active_at)
        recency = 0.0
        if last_active is not None:
            window = self._trending_window.total_seconds()
            elapsed = max(0.0, (now - last_active).total_seconds())
            recency = max(0.0, 1.0 - elapsed / window) * 100
        views = min(MAX_VIEW_POINTS, (profile.profile_view_count or 0) / VIEWS_PER_POINT)
        return recency + views

    # ── Scoring fan-out ───────────────────────────────────────────────

    async def _score_candidates(
        self,
        user: Profile,
        candidates: list[Profile],
        preferences: UserPreferences,
        db_session: AsyncSession,
    ) -> list[CompatibilityScore]:
        """Score all candidates; the list is complete before ranking starts."""
        scores: list[CompatibilityScore] = []
        misses: list[Profile] = []

        for candidate in candidates:
            cached = await self._scorer.get_cached_compatibility(
                user.user_id, candidate.user_id, db_session
            )
            if cached is not None:
                scores.append(cached)
            else:
                misses.append(candidate)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _bounded(candidate: Profile) -> CompatibilityScore:
            async with semaphore:
                return await self._scorer.compute(user, candidate, preferences)

        results = await asyncio.gather(
            *(_bounded(c) for c in misses), return_exceptions=True
        )

        failed = 0
        for candidate, result in zip(misses, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failed += 1
                logger.warning(
                    "candidate_scoring_failed",
                    user_id=str(user.user_id),
                    candidate_user_id=str(candidate.user_id),
                    error=str(result),
                )
                continue
            await self._scorer.store_result(result, db_session)
            scores.append(result)

        logger.debug(
            "candidates_scored",
            user_id=str(user.user_id),
            cached=len(candidates) - len(misses),
            computed=len(misses) - failed,
            failed=failed,
        )
        return scores

    # ── Persistence ───────────────────────────────────────────────────

    async def _load_learning_data(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> LearningData | None:
        try:
            return await self._learner.get_learning_data(user_id, db_session)
        except SQLAlchemyError as exc:
            raise DependencyFailure("learning_store", str(exc)) from exc

    async def _store_recommendations(
        self,
        user_id: uuid.UUID,
        recommendations: list[MatchRecommendation],
        db_session: AsyncSession,
    ) -> None:
        if not recommendations:
            return
        try:
            async with db_session.begin_nested():
                records = [
                    MatchRecommendationRecord(
                        user_id=rec.user_id,
                        candidate_user_id=rec.candidate_user_id,
                        compatibility_score=rec.compatibility.overall_score,
                        compatibility_data=rec.compatibility.model_dump(mode="json"),
                        reason=rec.reason,
                        priority=rec.priority,
                        generated_at=rec.generated_at,
                        expires_at=rec.expires_at,
                    )
                    for rec in recommendations
                ]
                db_session.add_all(records)
                await db_session.flush()
        except SQLAlchemyError as exc:
            logger.warning("recommendations_store_failed", user_id=str(user_id), error=str(exc))
            return

        for rec, record in zip(recommendations, records):
            rec.id = record.id

    async def _store_session(
        self,
        user_id: uuid.UUID,
        session_type: str,
        recommendations: list[MatchRecommendation],
        db_session: AsyncSession,
    ) -> None:
        count = len(recommendations)
        average = (
            sum(r.compatibility.overall_score for r in recommendations) / count if count else 0.0
        )
        try:
            async with db_session.begin_nested():
                db_session.add(
                    RecommendationSession(
                        user_id=user_id,
                        session_type=session_type,
                        recommendation_count=count,
                        average_compatibility=round(average, 2),
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning("recommendation_session_store_failed", user_id=str(user_id), error=str(exc))

    async def _list_records(self, db_session: AsyncSession, *conditions, limit: int) -> list[MatchRecommendation]:
        result = await db_session.execute(
            select(MatchRecommendationRecord)
            .where(*conditions)
            .order_by(MatchRecommendationRecord.compatibility_score.desc())
            .limit(limit)
        )
        return [
            MatchRecommendation(
                id=record.id,
                user_id=record.user_id,
                candidate_user_id=record.candidate_user_id,
                compatibility=CompatibilityScore.model_validate(record.compatibility_data),
                reason=record.reason,
                priority=record.priority,
                generated_at=ensure_utc(record.generated_at),
                expires_at=ensure_utc(record.expires_at),
            )
            for record in result.scalars().all()
        ]
