"""Position and candidate lookups."""

from typing import Optional
import logging

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError

from api.schemas.question_sets import CandidateRef, PositionContext
from core.exceptions import CandidateLookupError
from database.engine import AsyncSessionLocal
from database.models.candidates import Candidate, CandidatePosition
from database.models.positions import Position

logger = logging.getLogger(__name__)


class SqlPositionLookup:
    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def get_position(
        self, position_id: int, organization_id: Optional[int] = None
    ) -> Optional[PositionContext]:
        async with self._session_factory() as session:
            query = select(Position).where(Position.id == position_id)
            if organization_id is not None:
                query = query.where(Position.organization_id == organization_id)
            result = await session.execute(query)
            position = result.scalar_one_or_none()
            return PositionContext.model_validate(position) if position else None


class SqlCandidateLookup:
    """Candidates bound to a position, scoped to an organization when one is given."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def candidates_for_position(
        self, position_id: int, organization_id: Optional[int] = None
    ) -> list[CandidateRef]:
        conditions = [CandidatePosition.position_id == position_id]
        if organization_id is not None:
            conditions.append(Candidate.organization_id == organization_id)

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Candidate)
                    .join(CandidatePosition, CandidatePosition.candidate_id == Candidate.id)
                    .where(and_(*conditions))
                    .order_by(Candidate.id)
                )
                candidates = result.scalars().unique().all()
        except SQLAlchemyError as e:
            raise CandidateLookupError(f"Could not load candidates for position {position_id}") from e

        return [CandidateRef.model_validate(c) for c in candidates]
