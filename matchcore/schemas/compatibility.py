from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

ConfidenceLevel = Literal["low", "medium", "high"]


class DimensionScore(BaseModel):
    score: float = Field(ge=0, le=100)
    tag: str
    explanation: str


class LocationScore(DimensionScore):
    tag: Literal["same_village", "same_block", "same_district", "nearby_district", "different"]


class EducationScore(DimensionScore):
    tag: Literal["exact", "compatible", "complementary", "different"]


class ReligiousScore(DimensionScore):
    tag: Literal["very_similar", "similar", "different"]
    sect_match: bool


class FamilyScore(DimensionScore):
    tag: Literal["very_similar", "similar", "complementary"]
    family_type_match: bool


class LifestyleScore(DimensionScore):
    tag: Literal["same_field", "compatible", "complementary"]
    skills_overlap: float = Field(ge=0, le=100)


class PersonalityScore(DimensionScore):
    tag: Literal["very_compatible", "compatible", "neutral", "challenging"]


class CompatibilityBreakdown(BaseModel):
    location: LocationScore
    education: EducationScore
    religious: ReligiousScore
    family: FamilyScore
    lifestyle: LifestyleScore
    personality: PersonalityScore


class CompatibilityScore(BaseModel):
    user_id: UUID
    candidate_user_id: UUID
    overall_score: float = Field(ge=0, le=100)
    breakdown: CompatibilityBreakdown
    explanation: str
    match_reasons: list[str] = []
    potential_concerns: list[str] = []
    confidence_level: ConfidenceLevel
    calculated_at: datetime


class OracleScores(BaseModel):
    overall: float = Field(ge=0, le=100)
    location: float = Field(ge=0, le=100)
    education: float = Field(ge=0, le=100)
    religious: float = Field(ge=0, le=100)
    family: float = Field(ge=0, le=100)
    lifestyle: float = Field(ge=0, le=100)
    personality: float = Field(ge=0, le=100)
    explanation: str = ""
    match_reasons: list[str] = []
    potential_concerns: list[str] = []


class MatchAnalytics(BaseModel):
    total_matches: int
    high_compatibility_matches: int
    average_compatibility: float
    top_match_factors: list[str]
    improvement_suggestions: list[str]


class CompatibilityLookupResponse(BaseModel):
    cached: bool
    compatibility: CompatibilityScore
