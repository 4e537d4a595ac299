"""Tests for MutualMatchDetector — detection, atomic creation and lifecycle."""
import asyncio
import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from matchcore.exceptions import DependencyFailure, NotFoundError, ValidationFailure
from matchcore.models import MutualMatch, Notification
from matchcore.services.interest_service import InterestService
from matchcore.services.mutual_match_service import (
    MutualMatchDetector,
    canonical_pair,
    determine_match_quality,
)
from matchcore.services.notification_service import NotificationService
from matchcore.utils.timeutils import utcnow


async def _count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


@pytest.fixture
async def pair(make_profile, make_interest):
    """Two users whose interests in each other were both accepted."""
    a = await make_profile(name="Aarav", gender="male")
    b = await make_profile(name="Priya")
    await make_interest(a.user_id, b.user_id)
    await make_interest(b.user_id, a.user_id)
    return a, b


class TestMatchScore:
    """Base 70, +5 per shared interest, +10 both messages, +10 both quick."""

    def _interest(self, message=None, common=None, responded_after=None):
        sent = utcnow() - timedelta(days=3)
        return SimpleNamespace(
            message=message,
            common_interests=common,
            sent_at=sent,
            responded_at=sent + responded_after if responded_after is not None else None,
        )

    def test_base_score(self, detector):
        score, common = detector.calculate_match_score(self._interest(), self._interest())
        assert score == 70.0
        assert common == []

    def test_shared_keywords_and_messages(self, detector):
        score, common = detector.calculate_match_score(
            self._interest("I enjoy reading and cricket"),
            self._interest("Cricket fan, always reading"),
        )
        assert common == ["cricket", "reading"]
        assert score == 90.0

    def test_quick_responses(self, detector):
        quick = timedelta(hours=5)
        score, _ = detector.calculate_match_score(
            self._interest(responded_after=quick), self._interest(responded_after=quick)
        )
        assert score == 80.0

    def test_one_slow_response_earns_nothing(self, detector):
        score, _ = detector.calculate_match_score(
            self._interest(responded_after=timedelta(hours=5)),
            self._interest(responded_after=timedelta(hours=30)),
        )
        assert score == 70.0

    def test_capped_at_100(self, detector):
        message = "reading travel cooking music yoga chess"
        quick = timedelta(hours=1)
        score, common = detector.calculate_match_score(
            self._interest(message, responded_after=quick), self._interest(message, responded_after=quick)
        )
        assert len(common) == 6
        assert score == 100.0

    @pytest.mark.parametrize(
        "score,quality",
        [(95, "excellent"), (90, "excellent"), (80, "good"), (75, "good"), (60, "fair"), (59, "poor")],
    )
    def test_quality_bands(self, score, quality):
        assert determine_match_quality(score) == quality


class TestCanonicalPair:

    def test_order_independent(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert canonical_pair(a, b) == canonical_pair(b, a)
        first, second = canonical_pair(a, b)
        assert str(first) <= str(second)


class TestCheckAndCreate:

    async def test_reciprocal_acceptance_creates_one_match(self, detector, pair, db_session):
        a, b = pair

        assert await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session) is True

        match = await detector.get_mutual_match(b.user_id, a.user_id, db_session)
        assert (match.user1_id, match.user2_id) == canonical_pair(a.user_id, b.user_id)
        assert match.status == "active"
        assert match.ai_match_score == 70.0
        assert match.match_quality == "fair"

        notifications = (await db_session.scalars(select(Notification))).all()
        assert {n.user_id for n in notifications} == {a.user_id, b.user_id}
        assert all(n.type == "new_match" and n.priority == "high" for n in notifications)
        assert all(n.payload["mutual_match_id"] == str(match.id) for n in notifications)

    async def test_second_check_is_a_noop(self, detector, pair, db_session):
        a, b = pair
        await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session)

        assert await detector.check_and_create_mutual_match(b.user_id, a.user_id, db_session) is True
        assert await _count(db_session, MutualMatch) == 1
        assert await _count(db_session, Notification) == 2

    async def test_one_direction_only(self, detector, make_profile, make_interest, db_session):
        a = await make_profile(gender="male")
        b = await make_profile()
        await make_interest(a.user_id, b.user_id)
        await make_interest(b.user_id, a.user_id, status="pending")

        assert await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session) is False
        assert await _count(db_session, MutualMatch) == 0

    async def test_same_user_is_rejected(self, detector, db_session):
        user_id = uuid.uuid4()
        with pytest.raises(ValidationFailure):
            await detector.check_and_create_mutual_match(user_id, user_id, db_session)

    async def test_blocked_match_is_not_reported(self, detector, pair, db_session):
        a, b = pair
        await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session)
        match = await detector.get_mutual_match(a.user_id, b.user_id, db_session)
        await detector.update_match_status(match.id, "blocked", db_session)

        assert await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session) is False

    async def test_notification_failure_does_not_undo_match(self, pair, db_session):
        class BrokenSink:
            async def notify(self, *args, **kwargs):
                raise RuntimeError("push gateway down")

        detector = MutualMatchDetector(InterestService(), BrokenSink())
        a, b = pair

        assert await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session) is True
        assert await _count(db_session, MutualMatch) == 1

    async def test_concurrent_checks_create_exactly_one_row(self, detector, pair, session_factory):
        """Two sessions racing on the same pair (in both argument orders)."""
        a, b = pair

        async def attempt(first, second):
            async with session_factory() as session:
                matched = await detector.check_and_create_mutual_match(first, second, session)
                await session.commit()
                return matched

        results = await asyncio.gather(
            attempt(a.user_id, b.user_id),
            attempt(b.user_id, a.user_id),
        )

        assert results == [True, True]
        async with session_factory() as session:
            assert await _count(session, MutualMatch) == 1
            assert await _count(session, Notification) == 2


class TestUserAndBatch:

    async def test_check_user_counts_new_matches(self, detector, pair, db_session):
        a, b = pair
        assert await detector.check_user_for_mutual_matches(b.user_id, db_session) == 1
        assert await detector.check_user_for_mutual_matches(b.user_id, db_session) == 0
        assert await detector.check_user_for_mutual_matches(a.user_id, db_session) == 0

    async def test_batch_isolates_failures(self, pair, make_profile, db_session):
        a, b = pair
        broken_user = uuid.uuid4()

        class FlakyInterests(InterestService):
            async def get_received_interests(self, user_id, db_session, statuses=None, sender_id=None):
                if user_id == broken_user:
                    raise DependencyFailure("interest_store", "connection reset")
                return await super().get_received_interests(user_id, db_session, statuses, sender_id)

        detector = MutualMatchDetector(FlakyInterests(), NotificationService())
        lonely = await make_profile()

        result = await detector.batch_process_mutual_matches(
            [broken_user, a.user_id, lonely.user_id], db_session
        )

        assert result.processed == 3
        assert result.matches_created == 1
        assert result.errors == 1


class TestLifecycle:

    async def _match(self, detector, pair, db_session):
        a, b = pair
        await detector.check_and_create_mutual_match(a.user_id, b.user_id, db_session)
        return await detector.get_mutual_match(a.user_id, b.user_id, db_session)

    async def test_status_transition(self, detector, pair, db_session):
        match = await self._match(detector, pair, db_session)

        updated = await detector.update_match_status(match.id, "contacted", db_session)

        assert updated.status == "contacted"
        assert updated.last_interaction_at is not None

    async def test_blocked_is_terminal(self, detector, pair, db_session):
        match = await self._match(detector, pair, db_session)
        await detector.update_match_status(match.id, "blocked", db_session)

        with pytest.raises(ValidationFailure):
            await detector.update_match_status(match.id, "active", db_session)

    async def test_unknown_status(self, detector, pair, db_session):
        match = await self._match(detector, pair, db_session)
        with pytest.raises(ValidationFailure):
            await detector.update_match_status(match.id, "married", db_session)

    async def test_unknown_match(self, detector, db_session):
        with pytest.raises(NotFoundError):
            await detector.update_match_status(uuid.uuid4(), "contacted", db_session)

    async def test_listing_and_stats(self, detector, pair, db_session):
        a, b = pair
        match = await self._match(detector, pair, db_session)

        assert [m.id for m in await detector.get_mutual_matches(a.user_id, db_session)] == [match.id]
        assert await detector.get_mutual_matches(b.user_id, db_session, status="contacted") == []

        stats = await detector.get_mutual_match_stats(b.user_id, db_session)
        assert stats.total_matches == 1
        assert stats.active_matches == 1
        assert stats.matches_by_quality == {"excellent": 0, "good": 0, "fair": 1, "poor": 0}
        assert stats.average_match_score == 70.0
        assert stats.recent_matches[0].id == match.id
