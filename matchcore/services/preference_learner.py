"""
Matchcore — PreferenceLearner

Maintains one ``LearningDataRecord`` per user from observed behaviour:

- ``view`` and ``interest`` interactions widen the learned age range to
  include the target's age +/- 2 and add the target's district, education
  and occupation to the learned sets.  Nothing is ever removed.
- Post-match feedback folds the pair's cached compatibility into a running
  ``average_compatibility_of_interests`` using ``(old + score * weight) / 2``.

Updates are last-writer-wins per user.  Widening is commutative and
idempotent, so interleaved writers converge on a superset of every target
they observed.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.config import get_settings
from matchcore.models.learning import LearningDataRecord, MatchFeedback, UserInteraction
from matchcore.schemas.preferences import FeedbackEvent, InteractionEvent, LearningData
from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.profile_service import ProfileService
from matchcore.utils.timeutils import utcnow

logger = structlog.get_logger("matchcore.services.preference_learner")

FEEDBACK_WEIGHTS: dict[str, float] = {
    "excellent": 1.0,
    "good": 0.8,
    "average": 0.6,
    "poor": 0.2,
}
DEFAULT_FEEDBACK_WEIGHT = 0.5

LEARNING_INTERACTIONS = frozenset({"view", "interest"})
AGE_MARGIN = 2


def _with_item(values: list | None, item: str | None) -> list:
    """Return ``values`` plus ``item`` as a new list (JSON columns need reassignment)."""
    current = list(values or [])
    if item and item not in current:
        current.append(item)
    return current


class PreferenceLearner:
    """Learns implicit partner preferences from interactions and feedback."""

    def __init__(
        self,
        profile_service: ProfileService,
        compatibility_scorer: CompatibilityScorer,
    ) -> None:
        settings = get_settings()
        self._profiles = profile_service
        self._scorer = compatibility_scorer
        self._default_age_min = settings.DEFAULT_LEARNED_AGE_MIN
        self._default_age_max = settings.DEFAULT_LEARNED_AGE_MAX

    # ── Public API ────────────────────────────────────────────────────

    async def record_interaction(
        self,
        event: InteractionEvent,
        db_session: AsyncSession,
    ) -> LearningData | None:
        """Log ``event`` and, for views and interests, widen the learned model.

        Target attributes missing from the event are looked up on the
        target's profile.  Returns the learning data after the update.
        """
        log = logger.bind(
            user_id=str(event.user_id),
            target_user_id=str(event.target_user_id),
            interaction_type=event.interaction_type,
        )

        db_session.add(
            UserInteraction(
                user_id=event.user_id,
                target_user_id=event.target_user_id,
                interaction_type=event.interaction_type,
                context=event.context,
            )
        )
        await db_session.flush()

        if event.interaction_type not in LEARNING_INTERACTIONS:
            log.debug("interaction_logged_without_learning")
            return await self.get_learning_data(event.user_id, db_session)

        age = event.target_age
        district = event.target_district
        education = event.target_education
        occupation = event.target_occupation

        if None in (age, district, education, occupation):
            target = await self._profiles.get_profile(event.target_user_id, db_session)
            if target is not None:
                age = age if age is not None else target.age
                district = district or target.district
                education = education or target.education
                occupation = occupation or target.occupation

        record = await self._get_or_create_record(event.user_id, db_session)

        if age is not None:
            record.preferred_age_min = min(record.preferred_age_min, age - AGE_MARGIN)
            record.preferred_age_max = max(record.preferred_age_max, age + AGE_MARGIN)
        record.preferred_locations = _with_item(record.preferred_locations, district)
        record.preferred_education = _with_item(record.preferred_education, education)
        record.preferred_occupations = _with_item(record.preferred_occupations, occupation)

        if event.interaction_type == "view":
            record.viewed_profiles += 1
        else:
            record.sent_interests += 1
        record.last_updated = utcnow()
        await db_session.flush()

        log.info(
            "preferences_learned",
            age_range=[record.preferred_age_min, record.preferred_age_max],
            locations=len(record.preferred_locations),
        )
        return LearningData.model_validate(record)

    async def record_feedback(self, event: FeedbackEvent, db_session: AsyncSession) -> None:
        """Log feedback on a match and blend it into the running average."""
        log = logger.bind(
            user_id=str(event.user_id),
            match_user_id=str(event.match_user_id),
            feedback=event.feedback,
        )

        db_session.add(
            MatchFeedback(
                user_id=event.user_id,
                match_user_id=event.match_user_id,
                feedback=event.feedback,
                reasons=event.reasons,
            )
        )
        await db_session.flush()

        compatibility = await self._scorer.get_cached_compatibility(
            event.user_id, event.match_user_id, db_session
        )
        record = await self._load_record(event.user_id, db_session)
        if compatibility is None or record is None:
            log.info(
                "feedback_logged_without_learning",
                has_compatibility=compatibility is not None,
                has_learning_data=record is not None,
            )
            return

        weight = FEEDBACK_WEIGHTS.get(event.feedback, DEFAULT_FEEDBACK_WEIGHT)
        previous = record.average_compatibility_of_interests
        record.average_compatibility_of_interests = (
            previous + compatibility.overall_score * weight
        ) / 2
        record.last_updated = utcnow()
        await db_session.flush()

        log.info(
            "feedback_learned",
            previous_average=round(previous, 2),
            new_average=round(record.average_compatibility_of_interests, 2),
        )

    async def record_interest_accepted(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> LearningData:
        """Count an accepted interest that ``user_id`` had sent."""
        record = await self._get_or_create_record(user_id, db_session)
        record.accepted_interests += 1
        record.last_updated = utcnow()
        await db_session.flush()
        return LearningData.model_validate(record)

    async def get_learning_data(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> LearningData | None:
        record = await self._load_record(user_id, db_session)
        if record is None:
            return None
        return LearningData.model_validate(record)

    # ── Persistence helpers ───────────────────────────────────────────

    async def _load_record(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> LearningDataRecord | None:
        result = await db_session.execute(
            select(LearningDataRecord).where(LearningDataRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _get_or_create_record(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> LearningDataRecord:
        """Load the user's record, seeding a fresh one on first use.

        A fresh record starts from the default age range, the user's own
        district and the user's own sect.  If a concurrent writer created
        the row first, its row is used.
        """
        record = await self._load_record(user_id, db_session)
        if record is not None:
            return record

        profile = await self._profiles.get_profile(user_id, db_session)
        record = LearningDataRecord(
            user_id=user_id,
            preferred_age_min=self._default_age_min,
            preferred_age_max=self._default_age_max,
            preferred_education=[],
            preferred_occupations=[],
            preferred_locations=[profile.district] if profile and profile.district else [],
            preferred_sects=[profile.sect] if profile and profile.sect else [],
            viewed_profiles=0,
            sent_interests=0,
            accepted_interests=0,
            average_compatibility_of_interests=0.0,
            last_updated=utcnow(),
        )
        try:
            async with db_session.begin_nested():
                db_session.add(record)
        except IntegrityError:
            logger.info("learning_data_created_concurrently", user_id=str(user_id))
            existing = await self._load_record(user_id, db_session)
            if existing is None:
                raise
            return existing

        logger.info("learning_data_created", user_id=str(user_id))
        return record
