"""
Matchcore — Mutual matches API
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.api.deps import get_mutual_match_detector
from matchcore.database import get_db
from matchcore.schemas.mutual_match import (
    BatchProcessRequest,
    BatchResult,
    MatchStatus,
    MutualMatchCheckRequest,
    MutualMatchCheckResponse,
    MutualMatchResponse,
    MutualMatchStats,
    StatusUpdateRequest,
)
from matchcore.services.mutual_match_service import MutualMatchDetector

logger = structlog.get_logger("matchcore.api.mutual_matches")

router = APIRouter()


@router.post(
    "/check",
    response_model=MutualMatchCheckResponse,
    summary="Check a pair for reciprocal accepted interests",
)
async def check_pair(
    body: MutualMatchCheckRequest,
    detector: MutualMatchDetector = Depends(get_mutual_match_detector),
    db: AsyncSession = Depends(get_db),
) -> MutualMatchCheckResponse:
    matched = await detector.check_and_create_mutual_match(body.user_a_id, body.user_b_id, db)
    return MutualMatchCheckResponse(is_mutual_match=matched)


@router.post("/batch", response_model=BatchResult, summary="Detect matches for many users")
async def batch_process(
    body: BatchProcessRequest,
    detector: MutualMatchDetector = Depends(get_mutual_match_detector),
    db: AsyncSession = Depends(get_db),
) -> BatchResult:
    return await detector.batch_process_mutual_matches(body.user_ids, db)


@router.patch(
    "/match/{match_id}/status",
    response_model=MutualMatchResponse,
    summary="Transition a match's status",
)
async def update_status(
    match_id: uuid.UUID,
    body: StatusUpdateRequest,
    detector: MutualMatchDetector = Depends(get_mutual_match_detector),
    db: AsyncSession = Depends(get_db),
) -> MutualMatchResponse:
    match = await detector.update_match_status(match_id, body.status, db)
    return MutualMatchResponse.model_validate(match)


@router.get("/{user_id}", response_model=list[MutualMatchResponse], summary="A user's mutual matches")
async def list_matches(
    user_id: uuid.UUID,
    match_status: Optional[MatchStatus] = Query(None, alias="status"),
    detector: MutualMatchDetector = Depends(get_mutual_match_detector),
    db: AsyncSession = Depends(get_db),
) -> list[MutualMatchResponse]:
    matches = await detector.get_mutual_matches(user_id, db, status=match_status)
    return [MutualMatchResponse.model_validate(m) for m in matches]


@router.get("/{user_id}/stats", response_model=MutualMatchStats, summary="Mutual match statistics")
async def match_stats(
    user_id: uuid.UUID,
    detector: MutualMatchDetector = Depends(get_mutual_match_detector),
    db: AsyncSession = Depends(get_db),
) -> MutualMatchStats:
    return await detector.get_mutual_match_stats(user_id, db)
