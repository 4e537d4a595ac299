"""
Matchcore — Recommendations API

Personalised, cached, active and trending recommendation surfaces.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.api.deps import get_recommendation_engine
from matchcore.database import get_db
from matchcore.exceptions import ValidationFailure
from matchcore.schemas.preferences import RecommendationFilters
from matchcore.schemas.recommendation import RecommendationListResponse, TrendingMatch
from matchcore.services.recommendation_service import RecommendationEngine

logger = structlog.get_logger("matchcore.api.recommendations")

router = APIRouter()


def _filters(
    min_compatibility_score: Optional[float] = Query(None, ge=0, le=100),
    min_age: Optional[int] = Query(None, ge=18),
    max_age: Optional[int] = Query(None, le=100),
    districts: Optional[list[str]] = Query(None),
    education_levels: Optional[list[str]] = Query(None),
    sects: Optional[list[str]] = Query(None),
    occupations: Optional[list[str]] = Query(None),
    verified_only: Optional[bool] = Query(None),
    has_photo_only: Optional[bool] = Query(None),
    exclude_user_ids: Optional[list[uuid.UUID]] = Query(None),
) -> RecommendationFilters:
    try:
        return RecommendationFilters(
            min_compatibility_score=min_compatibility_score,
            min_age=min_age,
            max_age=max_age,
            districts=districts or [],
            education_levels=education_levels or [],
            sects=sects or [],
            occupations=occupations or [],
            verified_only=verified_only,
            has_photo_only=has_photo_only,
            exclude_user_ids=exclude_user_ids or [],
        )
    except ValidationError as exc:
        raise ValidationFailure("Invalid recommendation filters", details={"errors": exc.errors(include_url=False, include_context=False)}) from exc


@router.get(
    "/{user_id}",
    response_model=RecommendationListResponse,
    summary="Generate personalised recommendations",
)
async def get_recommendations(
    user_id: uuid.UUID,
    limit: int = Query(20, ge=1, le=50),
    filters: RecommendationFilters = Depends(_filters),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    db: AsyncSession = Depends(get_db),
) -> RecommendationListResponse:
    recommendations = await engine.get_personalized_recommendations(
        user_id, db, limit=limit, filters=filters
    )
    return RecommendationListResponse(
        user_id=user_id, count=len(recommendations), recommendations=recommendations
    )


@router.get(
    "/{user_id}/cached",
    response_model=RecommendationListResponse,
    summary="Recently generated recommendations without rescoring",
)
async def get_cached_recommendations(
    user_id: uuid.UUID,
    max_age_hours: float = Query(24, gt=0, le=24 * 30),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    db: AsyncSession = Depends(get_db),
) -> RecommendationListResponse:
    recommendations = await engine.get_cached_recommendations(user_id, db, max_age_hours=max_age_hours)
    return RecommendationListResponse(
        user_id=user_id, count=len(recommendations), recommendations=recommendations
    )


@router.get(
    "/{user_id}/active",
    response_model=RecommendationListResponse,
    summary="Unexpired recommendations, best first",
)
async def get_active_recommendations(
    user_id: uuid.UUID,
    limit: int = Query(10, ge=1, le=50),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    db: AsyncSession = Depends(get_db),
) -> RecommendationListResponse:
    recommendations = await engine.get_active_recommendations(user_id, db, limit=limit)
    return RecommendationListResponse(
        user_id=user_id, count=len(recommendations), recommendations=recommendations
    )


@router.post(
    "/{user_id}/refresh",
    response_model=RecommendationListResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Clear and regenerate recommendations",
)
async def refresh_recommendations(
    user_id: uuid.UUID,
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    db: AsyncSession = Depends(get_db),
) -> RecommendationListResponse:
    logger.info("recommendations_refresh_requested", user_id=str(user_id))
    recommendations = await engine.refresh_recommendations(user_id, db)
    return RecommendationListResponse(
        user_id=user_id, count=len(recommendations), recommendations=recommendations
    )


@router.get(
    "/{user_id}/trending",
    response_model=list[TrendingMatch],
    summary="Recently active, verified profiles",
)
async def get_trending(
    user_id: uuid.UUID,
    limit: int = Query(10, ge=1, le=50),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    db: AsyncSession = Depends(get_db),
) -> list[TrendingMatch]:
    return await engine.get_trending_matches(user_id, db, limit=limit)
