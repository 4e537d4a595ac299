"""Unit tests for ScoreOracleAdapter — profile summaries and payload validation."""
from types import SimpleNamespace

import pytest

from matchcore.exceptions import DependencyFailure
from matchcore.schemas.preferences import UserPreferences
from matchcore.services.score_oracle import ScoreOracleAdapter

from conftest import FakeOracle, profile_values


class TestSummariseProfile:

    def test_summary_omits_identity_and_photo(self):
        profile = SimpleNamespace(**profile_values(name="Priya Jha", profile_picture_id="pic-1"))
        summary = ScoreOracleAdapter.summarise_profile(profile)
        assert "name" not in summary
        assert "user_id" not in summary
        assert "profile_picture_id" not in summary
        assert summary["district"] == "Madhubani"
        assert summary["age"] == 27


class TestNormalise:
    """Raw oracle payloads are mapped, clamped and validated."""

    def test_full_payload(self):
        scores = ScoreOracleAdapter.normalise({
            "overall": 81,
            "location": 90,
            "education": 70,
            "religious": 85,
            "family": 60,
            "lifestyle": 75,
            "personality": 65,
            "explanation": "Strong fit",
            "match_reasons": ["same sect"],
            "potential_concerns": "different family type",
        })
        assert scores.overall == 81.0
        assert scores.family == 60.0
        assert scores.match_reasons == ["same sect"]
        assert scores.potential_concerns == ["different family type"]

    def test_camel_case_aliases(self):
        scores = ScoreOracleAdapter.normalise({
            "compatibilityScore": 77,
            "locationScore": 88,
            "matchReasons": ["nearby villages"],
        })
        assert scores.overall == 77.0
        assert scores.location == 88.0
        assert scores.match_reasons == ["nearby villages"]

    def test_missing_dimension_falls_back_to_overall(self):
        scores = ScoreOracleAdapter.normalise({"overall": 64, "education": 90})
        assert scores.education == 90.0
        assert scores.personality == 64.0
        assert scores.location == 64.0

    def test_out_of_range_values_are_clamped(self):
        scores = ScoreOracleAdapter.normalise({"overall": 120, "location": -10, "family": "55"})
        assert scores.overall == 100.0
        assert scores.location == 0.0
        assert scores.family == 55.0

    def test_missing_overall_is_a_dependency_failure(self):
        with pytest.raises(DependencyFailure) as exc_info:
            ScoreOracleAdapter.normalise({"location": 80})
        assert exc_info.value.dependency == "scoring_oracle"

    @pytest.mark.parametrize("bad", ["high", float("nan"), None])
    def test_unusable_overall(self, bad):
        with pytest.raises(DependencyFailure):
            ScoreOracleAdapter.normalise({"overall": bad})

    def test_non_object_payload(self):
        with pytest.raises(DependencyFailure):
            ScoreOracleAdapter.normalise(["overall", 80])


class TestEvaluate:

    async def test_passes_summaries_and_preferences(self):
        oracle = FakeOracle(overall=72.0)
        adapter = ScoreOracleAdapter(oracle)
        user = SimpleNamespace(**profile_values())
        candidate = SimpleNamespace(**profile_values(age=29))

        scores = await adapter.evaluate(user, candidate, UserPreferences(age_min=25, age_max=32))

        assert scores.overall == 72.0
        summary_a, summary_b, preferences = oracle.calls[0]
        assert summary_b["age"] == 29
        assert preferences["age_min"] == 25

    async def test_oracle_exception_becomes_dependency_failure(self):
        adapter = ScoreOracleAdapter(FakeOracle(fail_ages={29}))
        user = SimpleNamespace(**profile_values())
        candidate = SimpleNamespace(**profile_values(age=29))

        with pytest.raises(DependencyFailure) as exc_info:
            await adapter.evaluate(user, candidate)
        assert exc_info.value.status_code == 503
        assert "try again" in exc_info.value.suggestion
