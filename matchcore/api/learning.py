"""
Matchcore — Preference learning API

Interaction and feedback events flow in here from the client and the
interest subsystem.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.api.deps import get_preference_learner
from matchcore.database import get_db
from matchcore.exceptions import NotFoundError
from matchcore.schemas.preferences import FeedbackEvent, InteractionEvent, LearningData
from matchcore.services.preference_learner import PreferenceLearner

router = APIRouter()


@router.post(
    "/interactions",
    response_model=Optional[LearningData],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Record a view, interest, favorite, skip or block",
)
async def record_interaction(
    event: InteractionEvent,
    learner: PreferenceLearner = Depends(get_preference_learner),
    db: AsyncSession = Depends(get_db),
) -> Optional[LearningData]:
    return await learner.record_interaction(event, db)


@router.post(
    "/feedback",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Record post-match feedback",
)
async def record_feedback(
    event: FeedbackEvent,
    learner: PreferenceLearner = Depends(get_preference_learner),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await learner.record_feedback(event, db)
    return {"status": "recorded"}


@router.post(
    "/{user_id}/interest-accepted",
    response_model=LearningData,
    summary="Count an accepted interest sent by the user",
)
async def record_interest_accepted(
    user_id: uuid.UUID,
    learner: PreferenceLearner = Depends(get_preference_learner),
    db: AsyncSession = Depends(get_db),
) -> LearningData:
    return await learner.record_interest_accepted(user_id, db)


@router.get("/{user_id}", response_model=LearningData, summary="Learned preferences")
async def get_learning_data(
    user_id: uuid.UUID,
    learner: PreferenceLearner = Depends(get_preference_learner),
    db: AsyncSession = Depends(get_db),
) -> LearningData:
    data = await learner.get_learning_data(user_id, db)
    if data is None:
        raise NotFoundError("LearningData", user_id)
    return data
