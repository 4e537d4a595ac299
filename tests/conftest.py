"""Shared pytest fixtures for the matchcore tests."""
import os

os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from matchcore.config import get_settings
from matchcore.database import Base
from matchcore.models import Interest, Profile
from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.interest_service import InterestService
from matchcore.services.mutual_match_service import MutualMatchDetector
from matchcore.services.notification_service import NotificationService
from matchcore.services.preference_learner import PreferenceLearner
from matchcore.services.profile_service import ProfileService
from matchcore.services.recommendation_service import RecommendationEngine
from matchcore.services.score_oracle import ScoreOracleAdapter
from matchcore.utils.timeutils import utcnow

get_settings.cache_clear()


class FakeOracle:
    """Deterministic stand-in for the Gemini scoring oracle.

    Every dimension gets the overall score.  ``by_age`` overrides the
    overall score per candidate age and ``fail_ages`` makes the oracle
    raise for those candidates.
    """

    def __init__(self, overall=75.0, by_age=None, fail_ages=(), extra=None):
        self.overall = overall
        self.by_age = by_age or {}
        self.fail_ages = set(fail_ages)
        self.extra = extra or {}
        self.calls = []

    async def evaluate(self, summary_a, summary_b, preferences=None):
        self.calls.append((summary_a, summary_b, preferences))
        age = summary_b.get("age")
        if age in self.fail_ages:
            raise RuntimeError(f"oracle unavailable for age {age}")
        overall = self.by_age.get(age, self.overall)
        payload = {
            "overall": overall,
            "location": overall,
            "education": overall,
            "religious": overall,
            "family": overall,
            "lifestyle": overall,
            "personality": overall,
            "explanation": "Good fit on family values.",
            "match_reasons": ["same sect", "similar education"],
            "potential_concerns": [],
        }
        payload.update(self.extra)
        return payload


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    """A file-backed SQLite engine with real SAVEPOINT and write-lock semantics."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'matchcore.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------

def profile_values(**overrides):
    values = {
        "user_id": uuid.uuid4(),
        "name": "Test Profile",
        "age": 27,
        "gender": "female",
        "district": "Madhubani",
        "block": "Jainagar",
        "village": "Rampur",
        "education": "Bachelor's Degree",
        "occupation": "Teacher",
        "skills": ["cooking", "reading"],
        "sect": "Sunni",
        "religious_practice": "Regular prayers",
        "family_background": "Educated middle class family with farming roots",
        "bio": "I enjoy reading books and cooking traditional food with family",
        "family_type": "joint",
        "marital_status": "single",
        "is_verified": True,
        "is_profile_complete": True,
        "is_active": True,
        "last_active_at": utcnow(),
        "profile_view_count": 0,
    }
    values.update(overrides)
    return values


@pytest.fixture
def make_profile(db_session):
    async def _make(**overrides) -> Profile:
        profile = Profile(**profile_values(**overrides))
        db_session.add(profile)
        await db_session.commit()
        return profile

    return _make


@pytest.fixture
def make_interest(db_session):
    async def _make(
        sender_id,
        receiver_id,
        status="accepted",
        message=None,
        common_interests=None,
        sent_at=None,
        responded_in=None,
    ) -> Interest:
        sent_at = sent_at or utcnow() - timedelta(days=2)
        interest = Interest(
            sender_id=sender_id,
            receiver_id=receiver_id,
            status=status,
            message=message,
            common_interests=common_interests,
            sent_at=sent_at,
            responded_at=sent_at + responded_in if responded_in is not None else None,
        )
        db_session.add(interest)
        await db_session.commit()
        return interest

    return _make


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def profile_service():
    return ProfileService()


@pytest.fixture
def scorer(fake_oracle):
    return CompatibilityScorer(ScoreOracleAdapter(fake_oracle))


@pytest.fixture
def learner(profile_service, scorer):
    return PreferenceLearner(profile_service, scorer)


@pytest.fixture
def engine_service(profile_service, scorer, learner):
    return RecommendationEngine(profile_service, scorer, learner)


@pytest.fixture
def detector():
    return MutualMatchDetector(InterestService(), NotificationService())
