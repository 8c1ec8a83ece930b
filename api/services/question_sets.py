"""
Question-set persistence and candidate fan-out.

Saving a question set is a sequence of writes of decreasing importance:

1. compute totals and per-round times from the draft
2. upsert the aggregate (fatal on failure)
3. upsert the round-section document
4. upsert the instruction
5. resolve candidates bound to the position
6. upsert an assessment state per candidate
7. report

Only step 2 can fail the submission. Later failures are logged and
listed on the returned SubmissionReport.
"""

import asyncio
import logging
import math
import uuid
from typing import Any, Awaitable, Callable, Optional

from api.schemas.question_sets import (
    ROUND_ORDER,
    AssessmentStatePayload,
    DurationPreview,
    QuestionSetListItem,
    QuestionSetPayload,
    QuestionSetRecord,
    QuestionSetView,
    RoundSummary,
    RoundType,
    ShuffleFlags,
    StoredQuestionSet,
    SubmissionReport,
)
from api.services.drafts import QuestionSetDraft, is_valid, validate_draft
from api.services.interfaces import (
    AssessmentStateStore,
    CandidateLookup,
    InstructionStore,
    QuestionSetStore,
    SectionStore,
)
from core.cache import cache, redis_cache
from core.config import settings
from core.constants import DEFAULT_INSTRUCTION_TYPE, DEFAULT_SHUFFLE_MODE
from core.exceptions import (
    FatalPersistenceError,
    PartialPersistenceError,
    QuestionSetError,
    QuestionSetNotFoundError,
)
from core.utils.formatting import format_duration

logger = logging.getLogger(__name__)

QUESTION_SET_CACHE_PATTERN = "question_sets:*"

SECTION_KEYS = {
    RoundType.GENERAL: "general_questions",
    RoundType.POSITION: "position_specific_questions",
    RoundType.CODING: "coding_questions",
    RoundType.APTITUDE: "aptitude_questions",
}

QUESTION_TYPES = {
    RoundType.GENERAL: "GENERAL",
    RoundType.POSITION: "POSITION_SPECIFIC",
}


def generate_code(position_id: int) -> str:
    return f"QS-{position_id}-{uuid.uuid4().hex[:6].upper()}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ==================== Document builders ==================== #

def build_record(draft: QuestionSetDraft, code: str) -> QuestionSetRecord:
    """Aggregate columns for a draft."""
    return QuestionSetRecord(
        organization_id=draft.organization_id,
        position_id=draft.position_id,
        code=code,
        interview_platform=draft.interview_platform,
        interview_mode=draft.interview_mode,
        instruction=draft.instruction,
        shuffle={r.value: draft.shuffle[r] for r in ROUND_ORDER},
        rounds={
            r.value: [entry.model_dump(mode="json") for entry in draft.rounds[r]]
            for r in ROUND_ORDER
        },
        total_questions=draft.total_questions(),
        total_duration_minutes=draft.total_duration(),
        general_questions_count=draft.round_count(RoundType.GENERAL),
        position_questions_count=draft.round_count(RoundType.POSITION),
        coding_questions_count=draft.round_count(RoundType.CODING),
        aptitude_questions_count=draft.round_count(RoundType.APTITUDE),
    )


def build_section_document(draft: QuestionSetDraft) -> dict[str, Any]:
    """
    The per-round section document read by the interview runtime.

    General and position rounds carry their shuffle settings alongside
    the questions; round times are rendered as hh:mm:ss.
    """
    document: dict[str, Any] = {}
    for round_type in (RoundType.GENERAL, RoundType.POSITION):
        entries = draft.rounds[round_type]
        document[SECTION_KEYS[round_type]] = {
            "shuffle": {
                "status": draft.shuffle[round_type],
                "questions_count": len(entries),
                "selected_shuffle": DEFAULT_SHUFFLE_MODE,
            },
            "questions": [
                {
                    "id": q.id,
                    "question": q.text,
                    "answer": "",
                    "question_type": QUESTION_TYPES[round_type],
                    "time_to_prepare": q.prepare_time_seconds,
                    "time_to_answer": q.answer_time_minutes,
                }
                for q in entries
            ],
        }

    document[SECTION_KEYS[RoundType.CODING]] = [
        {
            "id": q.id,
            "question_source": q.source,
            "programming_language": q.programming_language,
            "difficulty_level": q.difficulty.value,
            "code_duration": q.duration_minutes,
            "custom_coding_question": q.text or "",
        }
        for q in draft.rounds[RoundType.CODING]
    ]
    document[SECTION_KEYS[RoundType.APTITUDE]] = [
        {
            "id": q.id,
            "question_source": q.topic,
            "difficulty_level": q.difficulty.value,
            "number_of_questions": q.question_count,
            "time_to_answer": q.per_question_time_minutes,
        }
        for q in draft.rounds[RoundType.APTITUDE]
    ]
    document.update({f"{key}_time": value for key, value in draft.round_times().items()})
    return document


def build_instruction_document(draft: QuestionSetDraft, question_set_id: int) -> dict[str, Any]:
    return {
        "position_id": draft.position_id,
        "question_set_id": question_set_id,
        "instruction_text": draft.instruction,
        "instruction_type": DEFAULT_INSTRUCTION_TYPE,
        "order_index": 0,
    }


def build_assessment_state(
    candidate_id: int,
    draft: QuestionSetDraft,
    question_set_id: int,
) -> AssessmentStatePayload:
    """Assignment and allocated time for one candidate, derived from the draft's rounds."""
    times = draft.round_times()
    values: dict[str, Any] = {}
    for round_type in ROUND_ORDER:
        prefix = f"round{round_type.number}"
        values[f"{prefix}_assigned"] = draft.round_count(round_type) > 0
        values[f"{prefix}_allocated_time"] = times[prefix]
    return AssessmentStatePayload(
        candidate_id=candidate_id,
        position_id=draft.position_id,
        question_set_id=question_set_id,
        total_rounds_assigned=sum(1 for r in ROUND_ORDER if draft.round_count(r) > 0),
        total_interview_time_minutes=round_half_up(draft.total_duration()),
        **values,
    )


def preview_draft(draft: QuestionSetDraft) -> DurationPreview:
    """Totals and per-round times for an unsaved draft."""
    times = draft.round_times()
    total = draft.total_duration()
    return DurationPreview(
        total_questions=draft.total_questions(),
        total_duration_minutes=total,
        total_duration_display=format_duration(total),
        is_valid=is_valid(draft),
        rounds=[
            RoundSummary(
                round=r,
                round_number=r.number,
                question_count=draft.round_count(r),
                duration_minutes=draft.round_duration(r),
                allocated_time=times[f"round{r.number}"],
            )
            for r in ROUND_ORDER
        ],
    )


def draft_view(draft: QuestionSetDraft, version: int = 1) -> QuestionSetView:
    payload = draft.to_payload()
    return QuestionSetView(
        **payload.model_dump(),
        version=version,
        total_questions=draft.total_questions(),
        total_duration_minutes=draft.total_duration(),
        round_times=draft.round_times(),
    )


def _question_set_cache_key(func, self, question_set_id: int) -> str:
    return f"question_sets:{question_set_id}"


def _position_cache_key(func, self, position_id: int) -> str:
    return f"question_sets:position:{position_id}"


# ==================== Orchestrator ==================== #

class PersistenceOrchestrator:
    """Save drafts, sync derived documents and fan out candidate assessment states."""

    def __init__(
        self,
        question_sets: QuestionSetStore,
        sections: SectionStore,
        instructions: InstructionStore,
        candidates: CandidateLookup,
        assessments: AssessmentStateStore,
        concurrency: Optional[int] = None,
    ):
        self.question_sets = question_sets
        self.sections = sections
        self.instructions = instructions
        self.candidates = candidates
        self.assessments = assessments
        self.concurrency = concurrency or settings.fanout_concurrency

    async def submit(self, draft: QuestionSetDraft) -> SubmissionReport:
        """
        Validate and persist a draft, then sync every bound candidate.

        Returns:
            SubmissionReport listing any secondary writes that failed

        Raises:
            QuestionSetValidationError: If a mandatory round is empty
            FatalPersistenceError: If the aggregate could not be saved
        """
        validate_draft(draft)

        mode = "updated" if draft.question_set_id else "created"
        stored = await self._save_aggregate(draft)
        draft.question_set_id = stored.id
        draft.code = stored.code

        report = SubmissionReport(
            mode=mode,
            question_set_id=stored.id,
            code=stored.code,
            position_id=draft.position_id,
            total_questions=draft.total_questions(),
            total_duration_minutes=draft.total_duration(),
            round_times=draft.round_times(),
        )

        section_error = await self._secondary(
            "sections", lambda: self.sections.upsert(stored.id, build_section_document(draft))
        )
        instruction_error = await self._secondary(
            "instructions", lambda: self.instructions.upsert(build_instruction_document(draft, stored.id))
        )
        report.failed_steps.extend(e.step for e in (section_error, instruction_error) if e)
        # reads overlay these documents, so invalidate only once both are written
        await redis_cache.delete_pattern(QUESTION_SET_CACHE_PATTERN)

        try:
            candidates = await self.candidates.candidates_for_position(
                draft.position_id, draft.organization_id
            )
        except Exception as e:
            logger.error(f"Candidate lookup failed for position {draft.position_id}: {e}")
            report.failed_steps.append("candidate_lookup")
            candidates = []

        report.candidates_resolved = len(candidates)
        failures = await self._fan_out([c.id for c in candidates], draft, stored.id)
        report.failed_candidates = failures
        report.candidates_updated = len(candidates) - len(failures)

        logger.info(
            f"Question set {stored.id} {mode}: {report.total_questions} questions, "
            f"{report.candidates_updated}/{report.candidates_resolved} candidates synced"
            + (f", failed steps {report.failed_steps}" if report.failed_steps else "")
        )
        return report

    async def _save_aggregate(self, draft: QuestionSetDraft) -> StoredQuestionSet:
        try:
            if draft.question_set_id:
                code = draft.code
                if not code:
                    existing = await self.question_sets.get(draft.question_set_id)
                    if existing is None:
                        raise QuestionSetNotFoundError(f"Question set {draft.question_set_id} not found")
                    code = existing.code
                return await self.question_sets.update(draft.question_set_id, build_record(draft, code))
            return await self.question_sets.create(
                build_record(draft, draft.code or generate_code(draft.position_id))
            )
        except QuestionSetNotFoundError:
            raise
        except Exception as e:
            logger.error(f"Failed to save question set for position {draft.position_id}: {e}")
            raise FatalPersistenceError("Failed to save question set") from e

    async def _secondary(
        self,
        step: str,
        write: Callable[[], Awaitable[None]],
        candidate_id: Optional[int] = None,
    ) -> Optional[PartialPersistenceError]:
        try:
            await write()
        except Exception as e:
            logger.error(f"Question set {step} write failed: {e}")
            return PartialPersistenceError(step, str(e), candidate_id=candidate_id)
        return None

    async def _fan_out(
        self, candidate_ids: list[int], draft: QuestionSetDraft, question_set_id: int
    ) -> list[int]:
        """Upsert every candidate's assessment state; return the ids that failed."""
        if not candidate_ids:
            return []
        semaphore = asyncio.Semaphore(self.concurrency)

        async def sync(candidate_id: int) -> Optional[PartialPersistenceError]:
            async with semaphore:
                state = build_assessment_state(candidate_id, draft, question_set_id)
                return await self._secondary(
                    "assessment_state", lambda: self.assessments.upsert(state), candidate_id=candidate_id
                )

        errors = [e for e in await asyncio.gather(*(sync(cid) for cid in candidate_ids)) if e]
        for error in errors:
            logger.error(
                f"Assessment state for candidate {error.candidate_id} "
                f"on question set {question_set_id} not updated"
            )
        return [error.candidate_id for error in errors]

    # ==================== Reads ==================== #

    async def load_draft(self, question_set_id: int) -> QuestionSetDraft:
        """
        Rebuild a draft for edit mode.

        Rounds come from the aggregate; the section document supplies
        shuffle flags and any rounds the aggregate lacks, and the
        instruction row supplies the instruction text. A failing overlay
        is logged and skipped.

        Raises:
            QuestionSetNotFoundError: If no aggregate has that id
        """
        stored = await self.question_sets.get(question_set_id)
        if stored is None:
            raise QuestionSetNotFoundError(f"Question set {question_set_id} not found")

        payload = QuestionSetPayload(
            question_set_id=stored.id,
            position_id=stored.position_id,
            organization_id=stored.organization_id,
            code=stored.code,
            interview_platform=stored.interview_platform,
            interview_mode=stored.interview_mode,
            shuffle=ShuffleFlags(**stored.shuffle),
            rounds=stored.rounds,
            **({"instruction": stored.instruction} if stored.instruction else {}),
        )
        draft = QuestionSetDraft.from_payload(payload)

        try:
            section = await self.sections.get(question_set_id)
        except Exception as e:
            logger.warning(f"Section overlay skipped for question set {question_set_id}: {e}")
            section = None
        if section:
            _overlay_section(draft, section)

        try:
            instruction = await self.instructions.get(question_set_id)
        except Exception as e:
            logger.warning(f"Instruction overlay skipped for question set {question_set_id}: {e}")
            instruction = None
        if instruction and instruction.get("instruction_text"):
            draft.instruction = instruction["instruction_text"]

        return draft

    @cache(ttl=settings.question_set_cache_ttl, key_builder=_question_set_cache_key)
    async def get_view(self, question_set_id: int) -> dict[str, Any]:
        """Cached JSON view of a stored question set."""
        stored = await self.question_sets.get(question_set_id)
        draft = await self.load_draft(question_set_id)
        return draft_view(draft, version=stored.version if stored else 1).model_dump(mode="json")

    @cache(ttl=settings.question_set_cache_ttl, key_builder=_position_cache_key)
    async def list_for_position(self, position_id: int) -> list[dict[str, Any]]:
        stored = await self.question_sets.list_for_position(position_id)
        return [
            QuestionSetListItem.model_validate(item.model_dump()).model_dump(mode="json")
            for item in stored
        ]


def _overlay_section(draft: QuestionSetDraft, section: dict[str, Any]) -> None:
    for round_type in (RoundType.GENERAL, RoundType.POSITION):
        block = section.get(SECTION_KEYS[round_type]) or {}
        shuffle = block.get("shuffle") or {}
        if "status" in shuffle:
            draft.set_shuffle(round_type, bool(shuffle["status"]))
        if not draft.rounds[round_type] and block.get("questions"):
            _fill_round(draft, round_type, block["questions"])

    for round_type in (RoundType.CODING, RoundType.APTITUDE):
        entries = section.get(SECTION_KEYS[round_type]) or []
        if not draft.rounds[round_type] and entries:
            _fill_round(draft, round_type, entries)


def _fill_round(draft: QuestionSetDraft, round_type: RoundType, entries: list[dict[str, Any]]) -> None:
    for entry in entries:
        try:
            draft.add_question(round_type, entry)
        except QuestionSetError as e:
            logger.warning(f"Skipping malformed {round_type.value} entry in section document: {e}")
