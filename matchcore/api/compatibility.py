"""
Matchcore — Compatibility API
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.api.deps import get_compatibility_scorer, get_profile_service
from matchcore.database import get_db
from matchcore.schemas.compatibility import CompatibilityLookupResponse, MatchAnalytics
from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.profile_service import ProfileService

logger = structlog.get_logger("matchcore.api.compatibility")

router = APIRouter()


@router.get(
    "/{user_id}/analytics",
    response_model=MatchAnalytics,
    summary="Summary of a user's computed compatibility scores",
)
async def get_match_analytics(
    user_id: uuid.UUID,
    scorer: CompatibilityScorer = Depends(get_compatibility_scorer),
    db: AsyncSession = Depends(get_db),
) -> MatchAnalytics:
    return await scorer.get_user_match_analytics(user_id, db)


@router.get(
    "/{user_id}/{candidate_user_id}",
    response_model=CompatibilityLookupResponse,
    summary="Compatibility of a candidate for a user (cached for 30 days)",
)
async def get_compatibility(
    user_id: uuid.UUID,
    candidate_user_id: uuid.UUID,
    scorer: CompatibilityScorer = Depends(get_compatibility_scorer),
    profiles: ProfileService = Depends(get_profile_service),
    db: AsyncSession = Depends(get_db),
) -> CompatibilityLookupResponse:
    user = await profiles.require_profile(user_id, db)
    candidate = await profiles.require_profile(candidate_user_id, db)

    compatibility, cached = await scorer.get_or_score(
        user, candidate, db, preferences=profiles.get_preferences(user)
    )
    logger.info(
        "compatibility_lookup",
        user_id=str(user_id),
        candidate_user_id=str(candidate_user_id),
        cached=cached,
    )
    return CompatibilityLookupResponse(cached=cached, compatibility=compatibility)
