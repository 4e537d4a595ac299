from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

InteractionType = Literal["view", "interest", "favorite", "skip", "block"]
FeedbackLevel = Literal["excellent", "good", "average", "poor"]


class UserPreferences(BaseModel):
    """Explicit partner preferences stated on a profile."""

    age_min: Optional[int] = None
    age_max: Optional[int] = None
    locations: list[str] = []
    education: list[str] = []
    sects: list[str] = []
    occupations: list[str] = []
    marital_status: list[str] = ["single"]
    family_type: Optional[str] = None
    must_have_photo: bool = False
    verified_only: bool = False


class RecommendationFilters(BaseModel):
    min_compatibility_score: Optional[float] = Field(default=None, ge=0, le=100)
    min_age: Optional[int] = Field(default=None, ge=18)
    max_age: Optional[int] = Field(default=None, le=100)
    districts: list[str] = []
    education_levels: list[str] = []
    sects: list[str] = []
    occupations: list[str] = []
    verified_only: Optional[bool] = None
    has_photo_only: Optional[bool] = None
    exclude_user_ids: list[UUID] = []

    @model_validator(mode="after")
    def _age_bounds_ordered(self) -> "RecommendationFilters":
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age must not exceed max_age")
        return self


class LearningData(BaseModel):
    user_id: UUID
    preferred_age_min: int
    preferred_age_max: int
    preferred_education: list[str] = []
    preferred_occupations: list[str] = []
    preferred_locations: list[str] = []
    preferred_sects: list[str] = []
    viewed_profiles: int = 0
    sent_interests: int = 0
    accepted_interests: int = 0
    average_compatibility_of_interests: float = 0.0
    last_updated: datetime

    model_config = {"from_attributes": True}

    @property
    def accept_rate(self) -> float:
        if self.sent_interests <= 0:
            return 0.0
        return self.accepted_interests / self.sent_interests


class InteractionEvent(BaseModel):
    user_id: UUID
    target_user_id: UUID
    interaction_type: InteractionType
    target_age: Optional[int] = Field(default=None, ge=0, le=120)
    target_district: Optional[str] = None
    target_education: Optional[str] = None
    target_occupation: Optional[str] = None
    context: Optional[dict[str, Any]] = None


class FeedbackEvent(BaseModel):
    user_id: UUID
    match_user_id: UUID
    feedback: FeedbackLevel
    reasons: list[str] = []
