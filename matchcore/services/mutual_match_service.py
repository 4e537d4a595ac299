"""
Matchcore — MutualMatchDetector

Creates exactly one ``MutualMatch`` per unordered user pair once both
directions of an interest have been accepted.

The pair is canonicalised (``user1_id`` is the smaller id by string form)
and creation is a single conditional insert against the
``uq_mutual_match_pair`` constraint: ``INSERT ... ON CONFLICT DO NOTHING
RETURNING id`` on PostgreSQL and SQLite, or a SAVEPOINT plus
``IntegrityError`` on other dialects.  Losing the race is a successful
no-op, and only the winning insert sends notifications.

Combined score: base 70, +5 per shared interest keyword, +10 if both
interests carried a message, +10 if both were answered within 24 hours,
capped at 100.
"""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import timedelta
from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.exceptions import MatchingError, NotFoundError, ValidationFailure
from matchcore.models.interest import Interest
from matchcore.models.mutual_match import MATCH_STATUSES, MutualMatch
from matchcore.schemas.mutual_match import BatchResult, MutualMatchResponse, MutualMatchStats
from matchcore.services.interest_extraction import InterestExtractor, KeywordInterestExtractor
from matchcore.services.interest_service import InterestService
from matchcore.services.notification_service import NotificationSink
from matchcore.utils.timeutils import ensure_utc, utcnow

logger = structlog.get_logger("matchcore.services.mutual_match")

BASE_MATCH_SCORE = 70.0
COMMON_INTEREST_POINTS = 5.0
BOTH_MESSAGES_POINTS = 10.0
QUICK_RESPONSE_POINTS = 10.0
QUICK_RESPONSE_WINDOW = timedelta(hours=24)
MAX_MATCH_SCORE = 100.0

NOTIFICATION_TYPE = "new_match"
NOTIFICATION_TITLE = "New Mutual Match!"
NOTIFICATION_MESSAGE = "You have a mutual interest with someone. Check it out!"


def canonical_pair(user_a: uuid.UUID, user_b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    return (user_a, user_b) if str(user_a) <= str(user_b) else (user_b, user_a)


def determine_match_quality(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"


class MutualMatchDetector:
    """Detects reciprocal accepted interests and records the match once."""

    def __init__(
        self,
        interest_service: InterestService,
        notification_sink: NotificationSink,
        interest_extractor: InterestExtractor | None = None,
    ) -> None:
        self._interests = interest_service
        self._notifications = notification_sink
        self._extractor = interest_extractor or KeywordInterestExtractor()

        logger.info(
            "mutual_match_detector_initialised",
            extractor=type(self._extractor).__name__,
        )

    # ── Public API ────────────────────────────────────────────────────

    async def check_and_create_mutual_match(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        db_session: AsyncSession,
    ) -> bool:
        """Return True iff the pair now has a new match or an existing active one.

        Raises
        ------
        ValidationFailure
            If both ids are the same user.
        """
        matched, _ = await self._detect(user_a, user_b, db_session)
        return matched

    async def check_user_for_mutual_matches(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> int:
        """Check every accepted interest ``user_id`` received; return matches created."""
        received = await self._interests.get_received_interests(
            user_id, db_session, statuses=["accepted"]
        )

        created = 0
        for sender_id in dict.fromkeys(i.sender_id for i in received):
            if await self.mutual_match_exists(user_id, sender_id, db_session):
                continue
            _, was_created = await self._detect(user_id, sender_id, db_session)
            created += int(was_created)
        return created

    async def batch_process_mutual_matches(
        self,
        user_ids: list[uuid.UUID],
        db_session: AsyncSession,
    ) -> BatchResult:
        """Run ``check_user_for_mutual_matches`` for each user.

        Each user runs in its own SAVEPOINT; a failure rolls back only that
        user's work and is counted in ``errors``.
        """
        result = BatchResult()
        for user_id in user_ids:
            result.processed += 1
            try:
                async with db_session.begin_nested():
                    result.matches_created += await self.check_user_for_mutual_matches(
                        user_id, db_session
                    )
            except (MatchingError, SQLAlchemyError) as exc:
                result.errors += 1
                logger.warning("batch_user_failed", user_id=str(user_id), error=str(exc))

        logger.info(
            "batch_mutual_matches_complete",
            processed=result.processed,
            matches_created=result.matches_created,
            errors=result.errors,
        )
        return result

    async def mutual_match_exists(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        db_session: AsyncSession,
    ) -> bool:
        return await self.get_mutual_match(user_a, user_b, db_session) is not None

    async def get_mutual_match(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        db_session: AsyncSession,
    ) -> MutualMatch | None:
        user1_id, user2_id = canonical_pair(user_a, user_b)
        result = await db_session.execute(
            select(MutualMatch).where(
                MutualMatch.user1_id == user1_id,
                MutualMatch.user2_id == user2_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_mutual_matches(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        status: str | None = None,
    ) -> list[MutualMatch]:
        stmt = select(MutualMatch).where(
            or_(MutualMatch.user1_id == user_id, MutualMatch.user2_id == user_id)
        )
        if status is not None:
            stmt = stmt.where(MutualMatch.status == status)
        result = await db_session.execute(stmt.order_by(MutualMatch.matched_at.desc()))
        return list(result.scalars().all())

    async def update_match_status(
        self,
        match_id: uuid.UUID,
        status: str,
        db_session: AsyncSession,
    ) -> MutualMatch:
        """Transition a match's status.  Matches are never deleted; ``blocked`` is final."""
        if status not in MATCH_STATUSES:
            raise ValidationFailure(f"Unknown match status '{status}'")

        match = await db_session.get(MutualMatch, match_id)
        if match is None:
            raise NotFoundError("MutualMatch", match_id)
        if match.status == "blocked" and status != "blocked":
            raise ValidationFailure(
                "A blocked match cannot be reactivated",
                suggestion="Blocked matches stay blocked.",
            )

        previous = match.status
        match.status = status
        match.last_interaction_at = utcnow()
        await db_session.flush()

        logger.info("mutual_match_status_changed", match_id=str(match_id), previous=previous, status=status)
        return match

    async def get_mutual_match_stats(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> MutualMatchStats:
        matches = await self.get_mutual_matches(user_id, db_session)
        quality = Counter(m.match_quality for m in matches)
        total = len(matches)

        return MutualMatchStats(
            total_matches=total,
            active_matches=sum(1 for m in matches if m.status == "active"),
            contacted_matches=sum(1 for m in matches if m.status == "contacted"),
            matches_by_quality={q: quality.get(q, 0) for q in ("excellent", "good", "fair", "poor")},
            average_match_score=(
                round(sum(m.ai_match_score for m in matches) / total, 1) if total else 0.0
            ),
            recent_matches=[MutualMatchResponse.model_validate(m) for m in matches[:5]],
        )

    # ── Scoring ───────────────────────────────────────────────────────

    def calculate_match_score(self, interest_1: Interest, interest_2: Interest) -> tuple[float, list[str]]:
        """Combined score and the sorted common interests of two interests."""
        common = sorted(self._extractor.extract(interest_1) & self._extractor.extract(interest_2))

        score = BASE_MATCH_SCORE + COMMON_INTEREST_POINTS * len(common)
        if (interest_1.message or "").strip() and (interest_2.message or "").strip():
            score += BOTH_MESSAGES_POINTS
        if self._responded_quickly(interest_1) and self._responded_quickly(interest_2):
            score += QUICK_RESPONSE_POINTS

        return min(MAX_MATCH_SCORE, score), common

    @staticmethod
    def _responded_quickly(interest: Interest) -> bool:
        sent = ensure_utc(interest.sent_at)
        responded = ensure_utc(interest.responded_at)
        if sent is None or responded is None:
            return False
        return responded - sent <= QUICK_RESPONSE_WINDOW

    # ── Detection & creation ──────────────────────────────────────────

    async def _detect(
        self,
        user_a: uuid.UUID,
        user_b: uuid.UUID,
        db_session: AsyncSession,
    ) -> tuple[bool, bool]:
        """Return ``(matched, created)`` for the pair."""
        if user_a == user_b:
            raise ValidationFailure("A user cannot match with themselves")

        log = logger.bind(user_a=str(user_a), user_b=str(user_b))

        a_to_b = await self._interests.get_sent_interests(
            user_a, db_session, statuses=["accepted"], receiver_id=user_b
        )
        b_to_a = await self._interests.get_sent_interests(
            user_b, db_session, statuses=["accepted"], receiver_id=user_a
        )
        if not a_to_b or not b_to_a:
            log.debug("no_reciprocal_acceptance", a_to_b=bool(a_to_b), b_to_a=bool(b_to_a))
            return False, False

        interest_a, interest_b = a_to_b[0], b_to_a[0]
        score, common = self.calculate_match_score(interest_a, interest_b)
        quality = determine_match_quality(score)

        user1_id, user2_id = canonical_pair(user_a, user_b)
        interest1, interest2 = (interest_a, interest_b) if user1_id == user_a else (interest_b, interest_a)

        match_id = await self._insert_if_absent(
            {
                "id": uuid.uuid4(),
                "user1_id": user1_id,
                "user2_id": user2_id,
                "interest1_id": interest1.id,
                "interest2_id": interest2.id,
                "ai_match_score": score,
                "common_interests": common,
                "match_quality": quality,
                "status": "active",
                "is_contact_shared": False,
                "matched_at": utcnow(),
            },
            db_session,
        )

        if match_id is None:
            existing = await self.get_mutual_match(user_a, user_b, db_session)
            active = existing is not None and existing.status == "active"
            log.info("mutual_match_already_exists", active=active)
            return active, False

        log.info("mutual_match_created", match_id=str(match_id), score=score, quality=quality)
        await self._notify_pair(user1_id, user2_id, match_id, score, quality, db_session)
        return True, True

    async def _insert_if_absent(
        self,
        values: dict[str, Any],
        db_session: AsyncSession,
    ) -> uuid.UUID | None:
        """Insert the match unless the pair exists; return the new id or None."""
        dialect = db_session.get_bind().dialect.name
        insert_factory = {"postgresql": pg_insert, "sqlite": sqlite_insert}.get(dialect)

        if insert_factory is not None:
            stmt = (
                insert_factory(MutualMatch)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["user1_id", "user2_id"])
                .returning(MutualMatch.id)
            )
            result = await db_session.execute(stmt)
            return result.scalar_one_or_none()

        try:
            async with db_session.begin_nested():
                db_session.add(MutualMatch(**values))
        except IntegrityError:
            return None
        return values["id"]

    async def _notify_pair(
        self,
        user1_id: uuid.UUID,
        user2_id: uuid.UUID,
        match_id: uuid.UUID,
        score: float,
        quality: str,
        db_session: AsyncSession,
    ) -> None:
        for recipient, other in ((user1_id, user2_id), (user2_id, user1_id)):
            try:
                async with db_session.begin_nested():
                    await self._notifications.notify(
                        recipient,
                        NOTIFICATION_TYPE,
                        NOTIFICATION_TITLE,
                        NOTIFICATION_MESSAGE,
                        "high",
                        db_session,
                        metadata={
                            "mutual_match_id": str(match_id),
                            "related_user_id": str(other),
                            "ai_match_score": score,
                            "match_quality": quality,
                        },
                    )
            except Exception as exc:
                logger.warning(
                    "mutual_match_notification_failed",
                    user_id=str(recipient),
                    match_id=str(match_id),
                    error=str(exc),
                )
