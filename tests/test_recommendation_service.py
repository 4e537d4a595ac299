"""Tests for RecommendationEngine — filtering, ranking, persistence and trending."""
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from matchcore.exceptions import NotFoundError
from matchcore.models import MatchRecommendationRecord, RecommendationSession
from matchcore.schemas.preferences import LearningData, RecommendationFilters, UserPreferences
from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.preference_learner import PreferenceLearner
from matchcore.services.recommendation_service import RecommendationEngine
from matchcore.services.score_oracle import ScoreOracleAdapter
from matchcore.utils.timeutils import utcnow

from conftest import FakeOracle

# Candidate age -> oracle overall score.
SCORES_BY_AGE = {24: 92.0, 25: 55.0, 26: 78.0, 27: 64.0, 28: 40.0, 29: 88.0}


@pytest.fixture
def oracle():
    return FakeOracle(by_age=SCORES_BY_AGE, fail_ages={31})


@pytest.fixture
def engine_service(profile_service, oracle):
    scorer = CompatibilityScorer(ScoreOracleAdapter(oracle))
    learner = PreferenceLearner(profile_service, scorer)
    return RecommendationEngine(profile_service, scorer, learner)


@pytest.fixture
async def seeker(make_profile):
    return await make_profile(name="Aarav", gender="male", age=30)


@pytest.fixture
async def candidates(make_profile):
    return [await make_profile(name=f"Candidate {age}", age=age) for age in SCORES_BY_AGE]


class TestPersonalizedRecommendations:

    async def test_results_exclude_self_and_low_scores(self, engine_service, seeker, candidates, db_session):
        recommendations = await engine_service.get_personalized_recommendations(
            seeker.user_id, db_session, limit=10
        )

        ids = [r.candidate_user_id for r in recommendations]
        assert seeker.user_id not in ids
        assert len(recommendations) <= 10
        assert all(r.compatibility.overall_score >= 60 for r in recommendations)
        assert [r.compatibility.overall_score for r in recommendations] == [92.0, 88.0, 78.0, 64.0]

    async def test_limit_is_respected(self, engine_service, seeker, candidates, db_session):
        recommendations = await engine_service.get_personalized_recommendations(
            seeker.user_id, db_session, limit=2
        )
        assert len(recommendations) <= 2
        assert all(r.compatibility.overall_score >= 60 for r in recommendations)

    async def test_whole_qualified_batch_is_stored_beyond_limit(self, engine_service, seeker, candidates, db_session):
        recommendations = await engine_service.get_personalized_recommendations(
            seeker.user_id, db_session, limit=2
        )

        assert [r.compatibility.overall_score for r in recommendations] == [92.0, 88.0]
        stored = (await db_session.scalars(select(MatchRecommendationRecord.compatibility_score))).all()
        assert sorted(stored, reverse=True) == [92.0, 88.0, 78.0, 64.0]
        session_row = await db_session.scalar(select(RecommendationSession))
        assert session_row.recommendation_count == 4
        assert session_row.average_compatibility == 80.5

        active = await engine_service.get_active_recommendations(seeker.user_id, db_session, limit=10)
        assert len(active) == 4

    async def test_priority_and_reason(self, engine_service, seeker, candidates, db_session):
        top = (await engine_service.get_personalized_recommendations(seeker.user_id, db_session))[0]
        assert top.priority == "high"
        assert top.reason == "High compatibility (92%) based on: same sect, similar education"
        assert top.candidate.name == "Candidate 24"
        assert top.expires_at - top.generated_at == timedelta(days=7)

    async def test_failing_candidate_is_excluded(self, engine_service, seeker, candidates, make_profile, db_session):
        broken = await make_profile(age=31)

        recommendations = await engine_service.get_personalized_recommendations(seeker.user_id, db_session)

        assert broken.user_id not in {r.candidate_user_id for r in recommendations}
        assert len(recommendations) == 4

    async def test_stated_preferences_filter_candidates(self, engine_service, candidates, make_profile, db_session):
        picky = await make_profile(gender="male", age=30, looking_for={"marital_status": ["single"]})
        other_district = await make_profile(age=24, district="Patna")
        other_sect = await make_profile(age=24, sect="Shia")
        inactive = await make_profile(age=24, is_active=False)

        recommendations = await engine_service.get_personalized_recommendations(picky.user_id, db_session)

        ids = {r.candidate_user_id for r in recommendations}
        assert len(ids) == 4
        assert not ids & {other_district.user_id, other_sect.user_id, inactive.user_id}

    async def test_no_stated_preferences_means_no_district_or_sect_filter(self, engine_service, seeker, make_profile, db_session):
        elsewhere = await make_profile(age=24, district="Darbhanga", block=None, village=None, sect="Shia")

        recommendations = await engine_service.get_personalized_recommendations(seeker.user_id, db_session)

        assert [r.candidate_user_id for r in recommendations] == [elsewhere.user_id]

    async def test_caller_threshold_raises_minimum(self, engine_service, seeker, candidates, db_session):
        recommendations = await engine_service.get_personalized_recommendations(
            seeker.user_id, db_session, filters=RecommendationFilters(min_compatibility_score=85)
        )
        assert [r.compatibility.overall_score for r in recommendations] == [92.0, 88.0]

    async def test_results_are_persisted_with_session(self, engine_service, seeker, candidates, db_session):
        recommendations = await engine_service.get_personalized_recommendations(seeker.user_id, db_session)

        assert all(r.id is not None for r in recommendations)
        stored = await db_session.scalar(select(func.count()).select_from(MatchRecommendationRecord))
        assert stored == len(recommendations)
        session_row = await db_session.scalar(select(RecommendationSession))
        assert session_row.session_type == "personalized"
        assert session_row.recommendation_count == 4

    async def test_unknown_user(self, engine_service, db_session):
        with pytest.raises(NotFoundError):
            await engine_service.get_personalized_recommendations(uuid.uuid4(), db_session)

    async def test_no_candidates(self, engine_service, seeker, db_session):
        assert await engine_service.get_personalized_recommendations(seeker.user_id, db_session) == []


class TestCachedAndActive:

    async def test_cached_excludes_entries_older_than_window(self, engine_service, seeker, candidates, db_session):
        generated = await engine_service.get_personalized_recommendations(seeker.user_id, db_session, limit=2)
        stale, fresh = generated[0], generated[1]
        await db_session.execute(
            update(MatchRecommendationRecord)
            .where(MatchRecommendationRecord.id == stale.id)
            .values(generated_at=utcnow() - timedelta(hours=25))
        )
        await db_session.execute(
            update(MatchRecommendationRecord)
            .where(MatchRecommendationRecord.id == fresh.id)
            .values(generated_at=utcnow() - timedelta(hours=1))
        )

        cached = await engine_service.get_cached_recommendations(seeker.user_id, db_session, max_age_hours=24)

        ids = [r.id for r in cached]
        assert fresh.id in ids
        assert stale.id not in ids

    async def test_active_excludes_expired(self, engine_service, seeker, candidates, db_session):
        generated = await engine_service.get_personalized_recommendations(seeker.user_id, db_session)
        await db_session.execute(
            update(MatchRecommendationRecord)
            .where(MatchRecommendationRecord.id == generated[0].id)
            .values(expires_at=utcnow() - timedelta(minutes=5))
        )

        active = await engine_service.get_active_recommendations(seeker.user_id, db_session, limit=10)

        assert len(active) == len(generated) - 1
        scores = [r.compatibility.overall_score for r in active]
        assert scores == sorted(scores, reverse=True)

    async def test_refresh_regenerates_from_score_cache(self, engine_service, oracle, seeker, candidates, db_session):
        await engine_service.get_personalized_recommendations(seeker.user_id, db_session)
        calls_after_first = len(oracle.calls)

        refreshed = await engine_service.refresh_recommendations(seeker.user_id, db_session)

        assert len(oracle.calls) == calls_after_first
        stored = await db_session.scalar(select(func.count()).select_from(MatchRecommendationRecord))
        assert len(refreshed) == 4
        assert stored == 4
        types = (await db_session.scalars(select(RecommendationSession.session_type))).all()
        assert sorted(types) == ["personalized", "refresh"]


class TestSearchFilters:
    """Stated preferences widened by learning, then overridden by the caller."""

    def _learning(self, user_id, **overrides):
        values = dict(
            user_id=user_id,
            preferred_age_min=20,
            preferred_age_max=40,
            preferred_locations=["Darbhanga"],
            preferred_education=["Doctorate"],
            preferred_sects=["Sunni"],
            last_updated=utcnow(),
        )
        values.update(overrides)
        return LearningData(**values)

    async def test_learning_widens_stated_ranges(self, engine_service, seeker):
        preferences = UserPreferences(age_min=25, age_max=30, locations=["Madhubani"], sects=["Sunni"])

        search = engine_service._build_search_filters(
            seeker, preferences, self._learning(seeker.user_id), RecommendationFilters(), limit=10
        )

        assert (search.min_age, search.max_age) == (20, 40)
        assert search.districts == ["Madhubani", "Darbhanga"]
        assert search.education_levels == ["Doctorate"]
        assert search.gender == "female"
        assert search.limit == 20
        assert seeker.user_id in search.exclude_user_ids

    async def test_caller_filters_override(self, engine_service, seeker):
        excluded = uuid.uuid4()
        search = engine_service._build_search_filters(
            seeker,
            UserPreferences(age_min=25, age_max=30, locations=["Madhubani"]),
            self._learning(seeker.user_id),
            RecommendationFilters(min_age=26, districts=["Supaul"], exclude_user_ids=[excluded]),
            limit=80,
        )

        assert search.min_age == 26
        assert search.max_age == 40
        assert search.districts == ["Supaul"]
        assert set(search.exclude_user_ids) == {seeker.user_id, excluded}
        assert search.limit == 100

    def test_learning_bonus(self):
        learning = self._learning(
            uuid.uuid4(), average_compatibility_of_interests=75.0, sent_interests=10, accepted_interests=4
        )
        assert RecommendationEngine._learning_bonus(80.0, learning) == 8.0
        assert RecommendationEngine._learning_bonus(70.0, learning) == 5.0
        assert RecommendationEngine._learning_bonus(95.0, learning) == 3.0
        assert RecommendationEngine._learning_bonus(80.0, None) == 0.0


class TestTrending:

    async def test_ranked_by_activity(self, engine_service, seeker, make_profile, db_session):
        now = utcnow()
        popular = await make_profile(age=26, last_active_at=now - timedelta(days=1), profile_view_count=250)
        recent = await make_profile(age=27, last_active_at=now, profile_view_count=0)
        await make_profile(age=28, last_active_at=now - timedelta(days=10), profile_view_count=900)
        await make_profile(age=29, is_verified=False, last_active_at=now)
        await make_profile(age=30, gender="male", last_active_at=now)

        trending = await engine_service.get_trending_matches(seeker.user_id, db_session, limit=10)

        assert [t.profile.user_id for t in trending] == [popular.user_id, recent.user_id]
        assert trending[0].activity_score == pytest.approx(135.71, abs=0.05)
        assert trending[1].activity_score == pytest.approx(100.0, abs=0.05)
