from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel

MatchQuality = Literal["excellent", "good", "fair", "poor"]
MatchStatus = Literal["active", "contacted", "inactive", "blocked"]


class MutualMatchResponse(BaseModel):
    id: UUID
    user1_id: UUID
    user2_id: UUID
    interest1_id: UUID
    interest2_id: UUID
    ai_match_score: float
    common_interests: list[str]
    match_quality: MatchQuality
    status: MatchStatus
    is_contact_shared: bool
    matched_at: datetime
    last_interaction_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MutualMatchCheckRequest(BaseModel):
    user_a_id: UUID
    user_b_id: UUID


class MutualMatchCheckResponse(BaseModel):
    is_mutual_match: bool


class BatchProcessRequest(BaseModel):
    user_ids: list[UUID]


class BatchResult(BaseModel):
    processed: int = 0
    matches_created: int = 0
    errors: int = 0


class StatusUpdateRequest(BaseModel):
    status: MatchStatus


class MutualMatchStats(BaseModel):
    total_matches: int
    active_matches: int
    contacted_matches: int
    matches_by_quality: dict[str, int]
    average_match_score: float
    recent_matches: list[MutualMatchResponse]
