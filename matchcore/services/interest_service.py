"""
Matchcore — Interest Provider

Read-only access to interests.  The interest subsystem owns creation and
status changes; the matching core only lists them.
"""

from __future__ import annotations

import uuid
from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matchcore.exceptions import DependencyFailure
from matchcore.models.interest import Interest

logger = structlog.get_logger("matchcore.services.interest")


class InterestService:

    async def get_sent_interests(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        statuses: Iterable[str] | None = None,
        receiver_id: uuid.UUID | None = None,
    ) -> list[Interest]:
        """Interests sent by ``user_id``, newest first."""
        stmt = select(Interest).where(Interest.sender_id == user_id)
        if receiver_id is not None:
            stmt = stmt.where(Interest.receiver_id == receiver_id)
        return await self._list(stmt, statuses, db_session)

    async def get_received_interests(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
        statuses: Iterable[str] | None = None,
        sender_id: uuid.UUID | None = None,
    ) -> list[Interest]:
        """Interests received by ``user_id``, newest first."""
        stmt = select(Interest).where(Interest.receiver_id == user_id)
        if sender_id is not None:
            stmt = stmt.where(Interest.sender_id == sender_id)
        return await self._list(stmt, statuses, db_session)

    async def _list(self, stmt, statuses, db_session: AsyncSession) -> list[Interest]:
        if statuses:
            stmt = stmt.where(Interest.status.in_(list(statuses)))
        stmt = stmt.order_by(Interest.sent_at.desc())
        try:
            result = await db_session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("interest_lookup_failed", error=str(exc))
            raise DependencyFailure("interest_store", str(exc)) from exc
        return list(result.scalars().all())
