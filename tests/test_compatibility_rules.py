"""Unit tests for the deterministic compatibility classifier."""
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from matchcore.schemas.compatibility import CompatibilityScore, OracleScores
from matchcore.services import compatibility_rules as rules

from conftest import profile_values


def _profile(**overrides):
    return SimpleNamespace(**profile_values(**overrides))


def _oracle(overall=70.0, **dims):
    values = {d: overall for d in ("location", "education", "religious", "family", "lifestyle", "personality")}
    values.update(dims)
    return OracleScores(overall=overall, **values)


class TestLocation:
    """Location tiers from village down to different region."""

    def test_same_village_pins_maximum(self):
        user = _profile()
        candidate = _profile()
        result = rules.classify_location(user, candidate, raw_score=40.0)
        assert result.tag == "same_village"
        assert result.score == 100.0

    def test_different_block_same_district(self):
        """Jainagar vs Pandaul in Madhubani is same_district, not same_block."""
        user = _profile(district="Madhubani", block="Jainagar", village="Rampur")
        candidate = _profile(district="Madhubani", block="Pandaul", village="Sarisab")
        result = rules.classify_location(user, candidate, raw_score=72.0)
        assert result.tag == "same_district"
        assert result.score == 72.0

    def test_same_block(self):
        user = _profile(village="Rampur")
        candidate = _profile(village="Khajauli")
        assert rules.classify_location(user, candidate, 80.0).tag == "same_block"

    def test_missing_villages_never_match(self):
        user = _profile(village=None, block=None)
        candidate = _profile(village=None, block=None)
        assert rules.classify_location(user, candidate, 65.0).tag == "same_district"

    def test_nearby_district_is_symmetric(self):
        madhubani = _profile(district="Madhubani", block=None, village=None)
        darbhanga = _profile(district="Darbhanga", block=None, village=None)
        araria = _profile(district="Araria", block=None, village=None)
        assert rules.classify_location(madhubani, darbhanga, 60.0).tag == "nearby_district"
        assert rules.classify_location(darbhanga, madhubani, 60.0).tag == "nearby_district"
        assert rules.classify_location(araria, madhubani, 60.0).tag == "nearby_district"

    def test_different_region(self):
        user = _profile(district="Madhubani")
        candidate = _profile(district="Patna", block="Danapur", village=None)
        result = rules.classify_location(user, candidate, 35.0)
        assert result.tag == "different"
        assert result.score == 35.0

    def test_raw_score_is_clamped(self):
        user = _profile(district="Madhubani")
        candidate = _profile(district="Patna")
        assert rules.classify_location(user, candidate, 140.0).score == 100.0
        assert rules.classify_location(user, candidate, -5.0).score == 0.0


class TestEducation:
    """Education tiers by distance on the ordered level table."""

    def test_same_level_pins_maximum(self):
        result = rules.classify_education(_profile(), _profile(), raw_score=55.0)
        assert result.tag == "exact"
        assert result.score == 100.0

    def test_alias_resolves_to_same_level(self):
        user = _profile(education="Graduate")
        candidate = _profile(education="Bachelor's Degree")
        assert rules.classify_education(user, candidate, 55.0).tag == "exact"

    def test_one_level_apart_is_compatible(self):
        user = _profile(education="Bachelor's Degree")
        candidate = _profile(education="Master's Degree")
        result = rules.classify_education(user, candidate, 70.0)
        assert result.tag == "compatible"
        assert result.score == 70.0

    def test_two_levels_apart_is_complementary(self):
        user = _profile(education="Intermediate")
        candidate = _profile(education="Master's Degree")
        assert rules.classify_education(user, candidate, 60.0).tag == "complementary"

    def test_large_gap_is_different(self):
        user = _profile(education="High School")
        candidate = _profile(education="Doctorate")
        assert rules.classify_education(user, candidate, 40.0).tag == "different"

    def test_unknown_level_is_different(self):
        user = _profile(education="Diploma in Tailoring")
        candidate = _profile(education="Master's Degree")
        assert rules.classify_education(user, candidate, 50.0).tag == "different"


class TestReligious:

    def test_same_sect_same_practice(self):
        result = rules.classify_religious(_profile(), _profile(), 85.0)
        assert result.tag == "very_similar"
        assert result.sect_match is True

    def test_same_sect_different_practice(self):
        user = _profile(religious_practice="Regular prayers")
        candidate = _profile(religious_practice="Occasional prayers")
        result = rules.classify_religious(user, candidate, 75.0)
        assert result.tag == "similar"
        assert result.sect_match is True

    def test_different_sect(self):
        user = _profile(sect="Sunni")
        candidate = _profile(sect="Shia")
        result = rules.classify_religious(user, candidate, 45.0)
        assert result.tag == "different"
        assert result.sect_match is False
        assert "Sunni" in result.explanation and "Shia" in result.explanation


class TestFamily:

    def test_many_shared_tokens_is_very_similar(self):
        background = "Educated middle class family with farming roots"
        result = rules.classify_family(
            _profile(family_background=background), _profile(family_background=background), 80.0
        )
        assert result.tag == "very_similar"
        assert result.family_type_match is True

    def test_two_shared_tokens_is_similar(self):
        user = _profile(family_background="Educated family of teachers")
        candidate = _profile(family_background="Business family, educated parents")
        assert rules.classify_family(user, candidate, 70.0).tag == "similar"

    def test_no_overlap_is_complementary(self):
        user = _profile(family_background="Farmers", family_type="joint")
        candidate = _profile(family_background="Doctors abroad", family_type="nuclear")
        result = rules.classify_family(user, candidate, 50.0)
        assert result.tag == "complementary"
        assert result.family_type_match is False
        assert "differ" in result.explanation


class TestLifestyle:

    def test_same_occupation(self):
        result = rules.classify_lifestyle(_profile(), _profile(), 80.0)
        assert result.tag == "same_field"
        assert result.skills_overlap == 100.0

    def test_same_occupation_group(self):
        user = _profile(occupation="Teacher")
        candidate = _profile(occupation="Engineer")
        assert rules.classify_lifestyle(user, candidate, 70.0).tag == "compatible"

    def test_skills_overlap_is_relative_to_user(self):
        assert rules.skills_overlap(["cooking", "reading"], ["Cooking", "cricket"]) == 50.0
        assert rules.skills_overlap([], ["cooking"]) == 0.0


class TestPersonality:

    def test_identical_bios_are_very_compatible(self):
        result = rules.classify_personality(_profile(), _profile(), 75.0)
        assert result.tag == "very_compatible"

    def test_unrelated_bios_are_challenging(self):
        user = _profile(bio="Quiet person who loves gardening")
        candidate = _profile(bio="Outgoing cricket fanatic")
        assert rules.classify_personality(user, candidate, 50.0).tag == "challenging"


class TestConfidence:
    """Completeness and verification gated on the overall score."""

    def test_complete_and_verified_high_score(self):
        assert rules.calculate_confidence_level(_profile(), _profile(), 82.0) == "high"

    def test_high_confidence_requires_score_70(self):
        assert rules.calculate_confidence_level(_profile(), _profile(), 65.0) == "medium"

    def test_incomplete_unverified_is_low(self):
        weak = _profile(is_profile_complete=False, is_verified=False)
        assert rules.calculate_confidence_level(weak, weak, 90.0) == "low"

    def test_one_incomplete_profile_is_medium(self):
        partial = _profile(is_profile_complete=False, is_verified=False)
        assert rules.calculate_confidence_level(_profile(), partial, 80.0) == "medium"


class TestIdenticalAttributes:
    """Two people with the same village and education pin both dimensions to 100."""

    @pytest.mark.parametrize("raw", [0.0, 37.5, 100.0])
    def test_exact_tiers_report_maximum(self, raw):
        user = _profile()
        twin = _profile()
        breakdown = rules.build_breakdown(user, twin, _oracle(overall=raw))
        assert breakdown.location.tag == "same_village"
        assert breakdown.location.score == 100.0
        assert breakdown.education.tag == "exact"
        assert breakdown.education.score == 100.0


class TestRecommendationHelpers:

    def test_priority_bands(self):
        assert rules.determine_priority(85) == "high"
        assert rules.determine_priority(84.9) == "medium"
        assert rules.determine_priority(70) == "medium"
        assert rules.determine_priority(69.9) == "low"

    def test_reason_uses_top_two_match_reasons(self):
        score = self._score(match_reasons=["same sect", "close villages", "shared hobbies"])
        reason = rules.generate_recommendation_reason(score)
        assert reason == "High compatibility (78%) based on: same sect, close villages"

    def test_reason_falls_back_to_strongest_dimensions(self):
        reason = rules.generate_recommendation_reason(self._score(match_reasons=[]))
        assert "strong location compatibility" in reason
        assert "strong education compatibility" in reason

    @staticmethod
    def _score(match_reasons):
        user, candidate = _profile(), _profile(district="Darbhanga", block=None, village=None)
        breakdown = rules.build_breakdown(
            user, candidate, _oracle(overall=78.0, location=95.0, education=90.0, religious=60.0,
                                     family=50.0, lifestyle=40.0, personality=30.0)
        )
        return CompatibilityScore(
            user_id=uuid.uuid4(),
            candidate_user_id=uuid.uuid4(),
            overall_score=77.6,
            breakdown=breakdown,
            explanation="",
            match_reasons=match_reasons,
            confidence_level="high",
            calculated_at=datetime.now(timezone.utc),
        )
