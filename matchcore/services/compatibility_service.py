"""
Matchcore — CompatibilityScorer

Combines raw oracle estimates with the deterministic classifier in
``compatibility_rules`` to produce a structured ``CompatibilityScore`` and
caches it per ordered (user, candidate) pair.

Scoring is split in two halves so callers can fan out safely:

- ``compute`` talks only to the oracle and never touches the session, so
  many candidates can be scored concurrently;
- ``store_result`` writes the cache row inside a SAVEPOINT so a failed
  write never poisons the caller's transaction.

``score`` chains the two for the single-pair case.
"""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.config import get_settings
from matchcore.exceptions import ValidationFailure
from matchcore.models.compatibility import CompatibilityScoreRecord
from matchcore.models.profile import Profile
from matchcore.schemas.compatibility import CompatibilityScore, MatchAnalytics
from matchcore.schemas.preferences import UserPreferences
from matchcore.services import compatibility_rules as rules
from matchcore.services.score_oracle import ScoreOracleAdapter
from matchcore.utils.timeutils import utcnow

logger = structlog.get_logger("matchcore.services.compatibility")

HIGH_COMPATIBILITY_THRESHOLD = 80.0

_CONCERN_SUGGESTIONS = (
    ("location", "Consider expanding your location preferences to nearby districts"),
    ("education", "Highlight your educational achievements and career goals more clearly"),
    ("religious", "Provide more details about your religious practices and beliefs"),
    ("family", "Add more information about your family background and values"),
)


class CompatibilityScorer:
    """Multi-dimensional compatibility scoring with a 30-day cache."""

    def __init__(self, oracle_adapter: ScoreOracleAdapter) -> None:
        settings = get_settings()
        self._oracle = oracle_adapter
        self._cache_ttl = timedelta(days=settings.COMPATIBILITY_CACHE_TTL_DAYS)

        logger.info(
            "compatibility_scorer_initialised",
            cache_ttl_days=settings.COMPATIBILITY_CACHE_TTL_DAYS,
        )

    # ── Public API ────────────────────────────────────────────────────

    async def score(
        self,
        user: Profile,
        candidate: Profile,
        db_session: AsyncSession,
        preferences: UserPreferences | None = None,
    ) -> CompatibilityScore:
        """Score ``candidate`` for ``user`` and cache the result.

        A failure to cache is logged; the computed score is still returned.

        Raises
        ------
        ValidationFailure
            If both profiles belong to the same user.
        DependencyFailure
            If the scoring oracle fails or returns an unusable payload.
        """
        result = await self.compute(user, candidate, preferences)
        await self.store_result(result, db_session)
        return result

    async def compute(
        self,
        user: Profile,
        candidate: Profile,
        preferences: UserPreferences | None = None,
    ) -> CompatibilityScore:
        if user.user_id == candidate.user_id:
            raise ValidationFailure(
                "Cannot score a profile against itself",
                suggestion="Choose a different candidate profile.",
            )

        oracle = await self._oracle.evaluate(user, candidate, preferences)
        overall = round(oracle.overall, 1)
        breakdown = rules.build_breakdown(user, candidate, oracle)
        confidence = rules.calculate_confidence_level(user, candidate, overall)

        logger.debug(
            "compatibility_computed",
            user_id=str(user.user_id),
            candidate_user_id=str(candidate.user_id),
            overall=overall,
            confidence=confidence,
        )

        return CompatibilityScore(
            user_id=user.user_id,
            candidate_user_id=candidate.user_id,
            overall_score=overall,
            breakdown=breakdown,
            explanation=oracle.explanation,
            match_reasons=oracle.match_reasons,
            potential_concerns=oracle.potential_concerns,
            confidence_level=confidence,
            calculated_at=utcnow(),
        )

    async def store_result(self, result: CompatibilityScore, db_session: AsyncSession) -> bool:
        """Cache ``result``; return False (after logging) if the write failed."""
        try:
            async with db_session.begin_nested():
                db_session.add(
                    CompatibilityScoreRecord(
                        user_id=result.user_id,
                        candidate_user_id=result.candidate_user_id,
                        overall_score=result.overall_score,
                        confidence_level=result.confidence_level,
                        score_data=result.model_dump(mode="json"),
                        created_at=result.calculated_at,
                        expires_at=result.calculated_at + self._cache_ttl,
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning(
                "compatibility_cache_write_failed",
                user_id=str(result.user_id),
                candidate_user_id=str(result.candidate_user_id),
                error=str(exc),
            )
            return False
        return True

    async def get_cached_compatibility(
        self,
        user_id: uuid.UUID,
        candidate_user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> CompatibilityScore | None:
        """Return the newest unexpired cached score for the pair, or None."""
        try:
            result = await db_session.execute(
                select(CompatibilityScoreRecord)
                .where(
                    CompatibilityScoreRecord.user_id == user_id,
                    CompatibilityScoreRecord.candidate_user_id == candidate_user_id,
                    CompatibilityScoreRecord.expires_at > utcnow(),
                )
                .order_by(CompatibilityScoreRecord.created_at.desc())
                .limit(1)
            )
        except SQLAlchemyError as exc:
            logger.warning(
                "compatibility_cache_read_failed",
                user_id=str(user_id),
                candidate_user_id=str(candidate_user_id),
                error=str(exc),
            )
            return None

        record = result.scalar_one_or_none()
        if record is None:
            return None
        return CompatibilityScore.model_validate(record.score_data)

    async def get_or_score(
        self,
        user: Profile,
        candidate: Profile,
        db_session: AsyncSession,
        preferences: UserPreferences | None = None,
    ) -> tuple[CompatibilityScore, bool]:
        """Cached score if fresh, else a new one.  Second element is ``cached``."""
        cached = await self.get_cached_compatibility(user.user_id, candidate.user_id, db_session)
        if cached is not None:
            return cached, True
        return await self.score(user, candidate, db_session, preferences), False

    async def get_user_match_analytics(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> MatchAnalytics:
        """Summarise every unexpired score computed for ``user_id``."""
        result = await db_session.execute(
            select(CompatibilityScoreRecord.score_data).where(
                CompatibilityScoreRecord.user_id == user_id,
                CompatibilityScoreRecord.expires_at > utcnow(),
            )
        )
        scores = [CompatibilityScore.model_validate(row) for row in result.scalars().all()]

        if not scores:
            return MatchAnalytics(
                total_matches=0,
                high_compatibility_matches=0,
                average_compatibility=0.0,
                top_match_factors=[],
                improvement_suggestions=["Complete your profile to get better match recommendations"],
            )

        average = sum(s.overall_score for s in scores) / len(scores)
        factor_counts = Counter(reason for s in scores for reason in s.match_reasons)

        return MatchAnalytics(
            total_matches=len(scores),
            high_compatibility_matches=sum(
                1 for s in scores if s.overall_score >= HIGH_COMPATIBILITY_THRESHOLD
            ),
            average_compatibility=round(average),
            top_match_factors=[factor for factor, _ in factor_counts.most_common(5)],
            improvement_suggestions=self._improvement_suggestions(scores, average),
        )

    # ── Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _improvement_suggestions(scores: list[CompatibilityScore], average: float) -> list[str]:
        concern_counts = Counter(c for s in scores for c in s.potential_concerns)

        suggestions: list[str] = []
        for concern, _ in concern_counts.most_common(3):
            lowered = concern.lower()
            for keyword, suggestion in _CONCERN_SUGGESTIONS:
                if keyword in lowered:
                    if suggestion not in suggestions:
                        suggestions.append(suggestion)
                    break

        if average < 60:
            suggestions.append(
                "Complete your profile with more detailed information to improve match quality"
            )
        return suggestions[:3]
