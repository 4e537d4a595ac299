from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel

from matchcore.schemas.compatibility import CompatibilityScore
from matchcore.schemas.profile import ProfileSummary

Priority = Literal["high", "medium", "low"]


class MatchRecommendation(BaseModel):
    id: Optional[UUID] = None
    user_id: UUID
    candidate_user_id: UUID
    compatibility: CompatibilityScore
    reason: str
    priority: Priority
    generated_at: datetime
    expires_at: datetime
    candidate: Optional[ProfileSummary] = None


class TrendingMatch(BaseModel):
    profile: ProfileSummary
    activity_score: float


class RecommendationListResponse(BaseModel):
    user_id: UUID
    count: int
    recommendations: list[MatchRecommendation]
