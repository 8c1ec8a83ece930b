"""SQLAlchemy-backed stores for question sets and their derived documents."""

from typing import Any, Optional
import logging

from sqlalchemy import select, and_

from api.schemas.question_sets import AssessmentStatePayload, QuestionSetRecord, StoredQuestionSet
from core.exceptions import QuestionSetNotFoundError
from database.engine import AsyncSessionLocal
from database.models.assessments import AssessmentSummary
from database.models.question_sets import InstructionSection, QuestionSection, QuestionSet

logger = logging.getLogger(__name__)

SECTION_FIELDS = (
    "general_questions",
    "position_specific_questions",
    "coding_questions",
    "aptitude_questions",
    "round1_time",
    "round2_time",
    "round3_time",
    "round4_time",
)

# Owned by the interview runtime; never overwritten by a question-set save
PRESERVED_STATE_FIELDS = frozenset({
    "total_rounds_completed",
    "round1_completed",
    "round2_completed",
    "round3_completed",
    "round4_completed",
    "is_assessment_completed",
    "is_report_generated",
})


class SqlQuestionSetStore:
    """Question-set aggregates in the ``question_sets`` table."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def create(self, record: QuestionSetRecord) -> StoredQuestionSet:
        async with self._session_factory() as session:
            row = QuestionSet(**record.model_dump(), version=1, is_active=True)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info(f"Created question set {row.id} ({row.code}) for position {row.position_id}")
            return StoredQuestionSet.model_validate(row)

    async def update(self, question_set_id: int, record: QuestionSetRecord) -> StoredQuestionSet:
        async with self._session_factory() as session:
            result = await session.execute(
                select(QuestionSet).where(QuestionSet.id == question_set_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise QuestionSetNotFoundError(f"Question set {question_set_id} not found")

            for name, value in record.model_dump().items():
                setattr(row, name, value)
            row.version = (row.version or 0) + 1

            await session.commit()
            await session.refresh(row)
            logger.info(f"Updated question set {row.id} to version {row.version}")
            return StoredQuestionSet.model_validate(row)

    async def get(self, question_set_id: int) -> Optional[StoredQuestionSet]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(QuestionSet).where(QuestionSet.id == question_set_id)
            )
            row = result.scalar_one_or_none()
            return StoredQuestionSet.model_validate(row) if row else None

    async def list_for_position(self, position_id: int) -> list[StoredQuestionSet]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(QuestionSet)
                .where(and_(QuestionSet.position_id == position_id, QuestionSet.is_active.is_(True)))
                .order_by(QuestionSet.updated_at.desc())
            )
            return [StoredQuestionSet.model_validate(row) for row in result.scalars().all()]


class SqlSectionStore:
    """Round-section documents in the ``question_sections`` table."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def upsert(self, question_set_id: int, document: dict[str, Any]) -> None:
        values = {name: document[name] for name in SECTION_FIELDS if name in document}
        async with self._session_factory() as session:
            result = await session.execute(
                select(QuestionSection).where(QuestionSection.question_set_id == question_set_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(QuestionSection(question_set_id=question_set_id, **values))
            else:
                for name, value in values.items():
                    setattr(row, name, value)
            await session.commit()

    async def get(self, question_set_id: int) -> Optional[dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(QuestionSection).where(QuestionSection.question_set_id == question_set_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return {name: getattr(row, name) for name in SECTION_FIELDS}


class SqlInstructionStore:
    """Instruction rows in the ``instruction_sections`` table."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def upsert(self, document: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(InstructionSection).where(
                    and_(
                        InstructionSection.question_set_id == document["question_set_id"],
                        InstructionSection.instruction_type == document["instruction_type"],
                        InstructionSection.order_index == document["order_index"],
                    )
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(InstructionSection(**document))
            else:
                row.position_id = document["position_id"]
                row.instruction_text = document["instruction_text"]
            await session.commit()

    async def get(self, question_set_id: int) -> Optional[dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(InstructionSection)
                .where(InstructionSection.question_set_id == question_set_id)
                .order_by(InstructionSection.order_index)
                .limit(1)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return {
                "question_set_id": row.question_set_id,
                "position_id": row.position_id,
                "instruction_text": row.instruction_text,
                "instruction_type": row.instruction_type,
                "order_index": row.order_index,
            }


class SqlAssessmentStateStore:
    """Per-candidate assessment summaries in the ``assessment_summaries`` table."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def upsert(self, state: AssessmentStatePayload) -> None:
        values = state.model_dump()
        async with self._session_factory() as session:
            result = await session.execute(
                select(AssessmentSummary).where(
                    and_(
                        AssessmentSummary.candidate_id == state.candidate_id,
                        AssessmentSummary.position_id == state.position_id,
                        AssessmentSummary.question_set_id == state.question_set_id,
                    )
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(AssessmentSummary(**values))
            else:
                for name, value in values.items():
                    if name not in PRESERVED_STATE_FIELDS:
                        setattr(row, name, value)
            await session.commit()
