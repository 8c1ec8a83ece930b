"""
Collaborator contracts for question-set persistence.

The orchestrator and editing sessions depend only on these protocols;
``api.services.stores`` and ``api.services.lookups`` provide the
SQLAlchemy implementations.
"""

from typing import Any, Optional, Protocol

from api.schemas.question_sets import (
    AssessmentStatePayload,
    CandidateRef,
    PositionContext,
    QuestionSetRecord,
    StoredQuestionSet,
)


class PositionLookup(Protocol):
    async def get_position(
        self, position_id: int, organization_id: Optional[int] = None
    ) -> Optional[PositionContext]:
        """Return the position, or None if it does not exist in the organization."""
        ...


class CandidateLookup(Protocol):
    async def candidates_for_position(
        self, position_id: int, organization_id: Optional[int] = None
    ) -> list[CandidateRef]:
        """
        Return the candidates bound to a position.

        Raises:
            CandidateLookupError: If the lookup cannot be performed
        """
        ...


class QuestionSetStore(Protocol):
    async def create(self, record: QuestionSetRecord) -> StoredQuestionSet:
        ...

    async def update(self, question_set_id: int, record: QuestionSetRecord) -> StoredQuestionSet:
        """Overwrite an existing aggregate and bump its version.

        Raises:
            QuestionSetNotFoundError: If no aggregate has that id
        """
        ...

    async def get(self, question_set_id: int) -> Optional[StoredQuestionSet]:
        ...

    async def list_for_position(self, position_id: int) -> list[StoredQuestionSet]:
        ...


class SectionStore(Protocol):
    async def upsert(self, question_set_id: int, document: dict[str, Any]) -> None:
        ...

    async def get(self, question_set_id: int) -> Optional[dict[str, Any]]:
        ...


class InstructionStore(Protocol):
    async def upsert(self, document: dict[str, Any]) -> None:
        """Write the instruction keyed by (questionSetId, instructionType, orderIndex)."""
        ...

    async def get(self, question_set_id: int) -> Optional[dict[str, Any]]:
        ...


class AssessmentStateStore(Protocol):
    async def upsert(self, state: AssessmentStatePayload) -> None:
        """
        Write the state keyed by (candidate, position, question set).

        Existing rows keep their completion and report flags.
        """
        ...
