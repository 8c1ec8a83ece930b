"""FastAPI dependencies for dependency injection."""

from typing import Optional
from fastapi import Header

from agents.generation.channel import ChannelFactory, default_channel_factory
from api.services.interfaces import PositionLookup
from api.services.lookups import SqlCandidateLookup, SqlPositionLookup
from api.services.question_sets import PersistenceOrchestrator
from api.services.stores import (
    SqlAssessmentStateStore,
    SqlInstructionStore,
    SqlQuestionSetStore,
    SqlSectionStore,
)


async def get_organization_id(
    x_organization_id: Optional[int] = Header(None, description="Organization scope for candidate lookup"),
) -> Optional[int]:
    """Organization the caller is acting for, taken from the X-Organization-Id header."""
    return x_organization_id


def get_orchestrator() -> PersistenceOrchestrator:
    """Orchestrator wired to the SQLAlchemy stores."""
    return PersistenceOrchestrator(
        question_sets=SqlQuestionSetStore(),
        sections=SqlSectionStore(),
        instructions=SqlInstructionStore(),
        candidates=SqlCandidateLookup(),
        assessments=SqlAssessmentStateStore(),
    )


def get_position_lookup() -> PositionLookup:
    return SqlPositionLookup()


def get_channel_factory() -> ChannelFactory:
    return default_channel_factory
