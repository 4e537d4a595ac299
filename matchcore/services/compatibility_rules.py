"""
Matchcore — Deterministic compatibility classifier

Pure functions that turn one raw oracle sub-score plus the two profiles into
a tagged, explained dimension result.  Nothing here touches the database or
the network, so every rule can be exercised directly in unit tests.

Classification tiers
--------------------
- Location:    same_village > same_block > same_district > nearby_district > different
- Education:   exact | compatible (distance <= 1) | complementary (= 2) | different
- Religious:   sect equality gates the result; practice compared as plain text
- Family:      shared background tokens, > 3 very_similar, > 1 similar
- Lifestyle:   same occupation, same occupation group, else complementary
- Personality: bio token overlap, > 30% / > 15% / > 5% / challenging

Exact-match tiers (``same_village``, education ``exact``) report the maximum
score of 100 regardless of the raw oracle value.  Every other tier carries
the oracle value through unchanged.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from matchcore.schemas.compatibility import (
    CompatibilityBreakdown,
    CompatibilityScore,
    EducationScore,
    FamilyScore,
    LifestyleScore,
    LocationScore,
    OracleScores,
    PersonalityScore,
    ReligiousScore,
)

MAX_SCORE = 100.0

# ──────────────────────────────────────────────────────────────────────────────
# Static domain tables
# ──────────────────────────────────────────────────────────────────────────────

# Districts within practical travelling distance of each home district.
NEARBY_DISTRICTS: dict[str, frozenset[str]] = {
    "madhubani": frozenset({
        "darbhanga", "sitamarhi", "muzaffarpur", "samastipur", "supaul", "araria",
    }),
    "darbhanga": frozenset({"madhubani", "samastipur", "muzaffarpur", "sitamarhi"}),
    "sitamarhi": frozenset({"madhubani", "darbhanga", "muzaffarpur"}),
    "supaul": frozenset({"madhubani", "araria"}),
}

EDUCATION_LEVELS: dict[str, int] = {
    "high school": 1,
    "intermediate": 2,
    "bachelor's degree": 3,
    "master's degree": 4,
    "professional degree": 5,
    "doctorate": 6,
}

EDUCATION_ALIASES: dict[str, str] = {
    "graduate": "bachelor's degree",
    "post graduate": "master's degree",
    "postgraduate": "master's degree",
    "phd": "doctorate",
    "12th": "intermediate",
    "10th": "high school",
}

OCCUPATION_GROUPS: dict[str, frozenset[str]] = {
    "professional": frozenset({"doctor", "engineer", "teacher", "lawyer"}),
    "business": frozenset({"business", "entrepreneur", "trader"}),
    "service": frozenset({"government job", "private job", "banking"}),
}

_TOKEN_RE = re.compile(r"[a-z0-9']+")


# ──────────────────────────────────────────────────────────────────────────────
# Small helpers
# ──────────────────────────────────────────────────────────────────────────────

def _norm(value: Any) -> str:
    return str(value).strip().lower() if value else ""


def _same(a: Any, b: Any) -> bool:
    """Case-insensitive equality that never matches two missing values."""
    na, nb = _norm(a), _norm(b)
    return bool(na) and na == nb


def _clamp(value: float, low: float = 0.0, high: float = MAX_SCORE) -> float:
    return max(low, min(high, float(value)))


def significant_tokens(text: str | None) -> list[str]:
    """Lower-cased word tokens longer than three characters, in order."""
    return [t for t in _TOKEN_RE.findall(_norm(text)) if len(t) > 3]


def education_level(education: str | None) -> int | None:
    key = _norm(education)
    key = EDUCATION_ALIASES.get(key, key)
    return EDUCATION_LEVELS.get(key)


def occupation_group(occupation: str | None) -> str:
    key = _norm(occupation)
    for group, members in OCCUPATION_GROUPS.items():
        if key in members:
            return group
    return "other"


def is_nearby_district(district_a: str | None, district_b: str | None) -> bool:
    a, b = _norm(district_a), _norm(district_b)
    if not a or not b or a == b:
        return False
    return b in NEARBY_DISTRICTS.get(a, frozenset()) or a in NEARBY_DISTRICTS.get(b, frozenset())


# ──────────────────────────────────────────────────────────────────────────────
# Per-dimension classifiers
# ──────────────────────────────────────────────────────────────────────────────

def classify_location(user: Any, candidate: Any, raw_score: float) -> LocationScore:
    score = _clamp(raw_score)

    if _same(user.village, candidate.village) and _same(user.district, candidate.district):
        return LocationScore(
            score=MAX_SCORE,
            tag="same_village",
            explanation=(
                f"Both from {candidate.village} village, keeping families close "
                "and customs familiar."
            ),
        )
    if _same(user.block, candidate.block) and _same(user.district, candidate.district):
        return LocationScore(
            score=score,
            tag="same_block",
            explanation=(
                f"Both from {candidate.block} block, with easy travel and shared "
                "local culture."
            ),
        )
    if _same(user.district, candidate.district):
        return LocationScore(
            score=score,
            tag="same_district",
            explanation=(
                f"Both from {candidate.district} district, sharing regional "
                "culture and traditions."
            ),
        )
    if is_nearby_district(user.district, candidate.district):
        return LocationScore(
            score=score,
            tag="nearby_district",
            explanation=(
                f"{candidate.district} is a nearby district, a manageable distance "
                "with a similar cultural background."
            ),
        )
    return LocationScore(
        score=score,
        tag="different",
        explanation=(
            "Different regions may need more planning for family visits and "
            "cultural adjustment."
        ),
    )


def classify_education(user: Any, candidate: Any, raw_score: float) -> EducationScore:
    score = _clamp(raw_score)
    user_level = education_level(user.education)
    candidate_level = education_level(candidate.education)

    if _same(user.education, candidate.education) or (
        user_level is not None and user_level == candidate_level
    ):
        return EducationScore(
            score=MAX_SCORE,
            tag="exact",
            explanation="Same educational background, with shared academic experience.",
        )

    if user_level is None or candidate_level is None:
        return EducationScore(
            score=score,
            tag="different",
            explanation="Education levels could not be placed on a common scale.",
        )

    distance = abs(user_level - candidate_level)
    if distance <= 1:
        return EducationScore(
            score=score,
            tag="compatible",
            explanation="Similar education levels support mutual understanding and shared goals.",
        )
    if distance == 2:
        return EducationScore(
            score=score,
            tag="complementary",
            explanation="Different but complementary education backgrounds bring diverse perspectives.",
        )
    return EducationScore(
        score=score,
        tag="different",
        explanation="A large gap in education levels may need understanding on both sides.",
    )


def classify_religious(user: Any, candidate: Any, raw_score: float) -> ReligiousScore:
    score = _clamp(raw_score)
    sect_match = _same(user.sect, candidate.sect)

    if not sect_match:
        return ReligiousScore(
            score=score,
            tag="different",
            sect_match=False,
            explanation=(
                f"Different sects ({user.sect or 'unspecified'} vs "
                f"{candidate.sect or 'unspecified'}) may need family discussion "
                "and mutual understanding."
            ),
        )

    # Plain text comparison of self-reported practice; not semantic.
    if _same(user.religious_practice, candidate.religious_practice):
        return ReligiousScore(
            score=score,
            tag="very_similar",
            sect_match=True,
            explanation=f"Both follow the {candidate.sect} sect with very similar religious practice.",
        )
    return ReligiousScore(
        score=score,
        tag="similar",
        sect_match=True,
        explanation=f"Both follow the {candidate.sect} sect with minor differences in practice.",
    )


def classify_family(user: Any, candidate: Any, raw_score: float) -> FamilyScore:
    score = _clamp(raw_score)
    shared = set(significant_tokens(user.family_background)) & set(
        significant_tokens(candidate.family_background)
    )
    family_type_match = _same(user.family_type, candidate.family_type)

    if len(shared) > 3:
        tag, explanation = "very_similar", "Very similar family backgrounds and values."
    elif len(shared) > 1:
        tag, explanation = "similar", "Similar family backgrounds with shared values."
    else:
        tag, explanation = "complementary", "Different but potentially complementary family backgrounds."

    if family_type_match:
        explanation += f" Both prefer a {candidate.family_type} family."
    else:
        explanation += " Family type preferences differ and may need discussion."

    return FamilyScore(
        score=score,
        tag=tag,
        family_type_match=family_type_match,
        explanation=explanation,
    )


def skills_overlap(user_skills: Iterable[str] | None, candidate_skills: Iterable[str] | None) -> float:
    """Percentage of the user's skills that the candidate also lists."""
    mine = {_norm(s) for s in (user_skills or []) if _norm(s)}
    if not mine:
        return 0.0
    theirs = {_norm(s) for s in (candidate_skills or [])}
    return _clamp(len(mine & theirs) / len(mine) * 100)


def classify_lifestyle(user: Any, candidate: Any, raw_score: float) -> LifestyleScore:
    score = _clamp(raw_score)

    if _same(user.occupation, candidate.occupation):
        tag = "same_field"
        explanation = f"Both work as {candidate.occupation}, sharing professional understanding."
    elif occupation_group(user.occupation) == occupation_group(candidate.occupation):
        tag = "compatible"
        explanation = "Compatible professional fields with similar work cultures."
    else:
        tag = "complementary"
        explanation = "Different but complementary professional backgrounds."

    overlap = skills_overlap(user.skills, candidate.skills)
    if overlap > 50:
        explanation += " Strong overlap in skills and interests."
    elif overlap > 20:
        explanation += " Some shared skills and interests."
    else:
        explanation += " Different skill sets bring complementary strengths."

    return LifestyleScore(
        score=score,
        tag=tag,
        skills_overlap=round(overlap, 1),
        explanation=explanation,
    )


def bio_similarity(user_bio: str | None, candidate_bio: str | None) -> float:
    """Share of the user's significant bio words that appear in the candidate's bio."""
    user_words = significant_tokens(user_bio)
    if not user_words:
        return 0.0
    candidate_words = set(significant_tokens(candidate_bio))
    common = [w for w in user_words if w in candidate_words]
    return len(common) / len(user_words) * 100


def classify_personality(user: Any, candidate: Any, raw_score: float) -> PersonalityScore:
    score = _clamp(raw_score)
    similarity = bio_similarity(user.bio, candidate.bio)

    if similarity > 30:
        tag, explanation = "very_compatible", "Very similar outlook and communication style in the profiles."
    elif similarity > 15:
        tag, explanation = "compatible", "Compatible communication styles with shared personality traits."
    elif similarity > 5:
        tag, explanation = "neutral", "Different but potentially complementary personalities."
    else:
        tag, explanation = "challenging", "Different communication styles may need patience and understanding."

    return PersonalityScore(score=score, tag=tag, explanation=explanation)


# ──────────────────────────────────────────────────────────────────────────────
# Aggregate helpers
# ──────────────────────────────────────────────────────────────────────────────

def calculate_confidence_level(user: Any, candidate: Any, overall_score: float) -> str:
    """Blend profile completeness and verification, gated on the overall score.

    Completeness counts 1.0 for a complete profile and 0.5 otherwise,
    averaged across both; each verified profile adds 0.1.
    """
    completeness = (
        (1.0 if user.is_profile_complete else 0.5)
        + (1.0 if candidate.is_profile_complete else 0.5)
    ) / 2
    confidence = completeness + 0.1 * (int(bool(user.is_verified)) + int(bool(candidate.is_verified)))

    if confidence >= 0.9 and overall_score >= 70:
        return "high"
    if confidence >= 0.7 and overall_score >= 50:
        return "medium"
    return "low"


def build_breakdown(user: Any, candidate: Any, oracle: OracleScores) -> CompatibilityBreakdown:
    return CompatibilityBreakdown(
        location=classify_location(user, candidate, oracle.location),
        education=classify_education(user, candidate, oracle.education),
        religious=classify_religious(user, candidate, oracle.religious),
        family=classify_family(user, candidate, oracle.family),
        lifestyle=classify_lifestyle(user, candidate, oracle.lifestyle),
        personality=classify_personality(user, candidate, oracle.personality),
    )


def determine_priority(overall_score: float) -> str:
    if overall_score >= 85:
        return "high"
    if overall_score >= 70:
        return "medium"
    return "low"


def generate_recommendation_reason(compatibility: CompatibilityScore) -> str:
    """Human readable summary: the overall score and the top two reasons."""
    reasons = list(compatibility.match_reasons[:2])
    if not reasons:
        # Fall back to the two strongest dimensions.
        dims = sorted(
            compatibility.breakdown.model_dump().items(),
            key=lambda item: item[1]["score"],
            reverse=True,
        )
        reasons = [f"strong {name} compatibility" for name, _ in dims[:2]]
    return (
        f"High compatibility ({round(compatibility.overall_score)}%) "
        f"based on: {', '.join(reasons)}"
    )
