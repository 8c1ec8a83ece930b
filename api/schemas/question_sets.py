"""Question set API schemas: rounds, questions, drafts and submission reports."""

from enum import Enum
from typing import Any, Literal, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from core.constants import (
    DEFAULT_ANSWER_TIME_MINUTES,
    DEFAULT_APTITUDE_QUESTION_COUNT,
    DEFAULT_APTITUDE_TIME_PER_QUESTION_MINUTES,
    DEFAULT_APTITUDE_TOPIC,
    DEFAULT_CODING_DURATION_MINUTES,
    DEFAULT_CODING_SOURCE,
    DEFAULT_INSTRUCTION,
    DEFAULT_INTERVIEW_PLATFORM,
    DEFAULT_PREPARE_TIME_SECONDS,
)
from core.utils.validators import coerce_number

Number = Union[int, float]


class RoundType(str, Enum):
    """The four fixed interview rounds."""

    GENERAL = "general"
    POSITION = "position"
    CODING = "coding"
    APTITUDE = "aptitude"

    @property
    def number(self) -> int:
        """1-based round number (round1 = general ... round4 = aptitude)."""
        return ROUND_ORDER.index(self) + 1


ROUND_ORDER: tuple[RoundType, ...] = (
    RoundType.GENERAL,
    RoundType.POSITION,
    RoundType.CODING,
    RoundType.APTITUDE,
)

# Rounds that must hold at least one question before a set is finalized
MANDATORY_ROUNDS: tuple[RoundType, ...] = (RoundType.GENERAL, RoundType.POSITION)

# Rounds made of free-text questions (targets for AI and library questions)
TEXT_ROUNDS: tuple[RoundType, ...] = (RoundType.GENERAL, RoundType.POSITION)


class Provenance(str, Enum):
    """Where a question came from."""

    MANUAL = "manual"
    AI = "ai"
    LIBRARY = "library"


class Difficulty(str, Enum):
    """Difficulty level for coding and aptitude entries."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def _coerce_id(v: Any) -> Optional[str]:
    if v is None or v == "":
        return None
    return str(v)


def _coerce_difficulty(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().lower() or Difficulty.EASY.value
    return v if v is not None else Difficulty.EASY.value


class _RoundEntry(BaseModel):
    """Base for round entries; accepts snake_case and the legacy camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Optional[str]:
        """Store ids as strings; numeric ids from older documents are converted."""
        return _coerce_id(v)

    @property
    def identity(self) -> str:
        """Stable identity within a round: the id, falling back to the text."""
        return self.id if self.id is not None else (getattr(self, "text", None) or "")


class Question(_RoundEntry):
    """A general or position-specific interview question."""

    text: str = Field(default="", validation_alias=AliasChoices("text", "question"))
    prepare_time_seconds: Number = Field(
        default=DEFAULT_PREPARE_TIME_SECONDS,
        validation_alias=AliasChoices(
            "prepare_time_seconds", "prepareTime", "timeToPrepare", "time_to_prepare"
        ),
    )
    answer_time_minutes: Number = Field(
        default=DEFAULT_ANSWER_TIME_MINUTES,
        validation_alias=AliasChoices(
            "answer_time_minutes", "answerTime", "timeToAnswer", "time_to_answer"
        ),
    )
    provenance: Provenance = Provenance.MANUAL

    @field_validator("prepare_time_seconds", "answer_time_minutes", mode="before")
    @classmethod
    def coerce_times(cls, v: Any) -> Number:
        """Malformed time values count as zero."""
        return coerce_number(v)

    @field_validator("text", mode="before")
    @classmethod
    def default_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class CodingQuestion(_RoundEntry):
    """A coding round entry; text is optional for library-sourced problems."""

    text: Optional[str] = Field(
        default="", validation_alias=AliasChoices("text", "custom_coding_question", "customCodingQuestion")
    )
    programming_language: str = Field(
        default="Python",
        validation_alias=AliasChoices("programming_language", "language", "programmingLanguage"),
    )
    difficulty: Difficulty = Field(
        default=Difficulty.EASY,
        validation_alias=AliasChoices("difficulty", "difficultyLevel", "difficulty_level"),
    )
    duration_minutes: Number = Field(
        default=DEFAULT_CODING_DURATION_MINUTES,
        validation_alias=AliasChoices("duration_minutes", "duration", "codeDuration", "code_duration"),
    )
    source: str = Field(
        default=DEFAULT_CODING_SOURCE,
        validation_alias=AliasChoices("source", "questionSource", "question_source"),
    )

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def coerce_duration(cls, v: Any) -> Number:
        return coerce_number(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v: Any) -> Any:
        return _coerce_difficulty(v)


class AptitudeQuestion(_RoundEntry):
    """An aptitude round entry: a batch of MCQs on one topic."""

    topic: str = Field(
        default=DEFAULT_APTITUDE_TOPIC,
        validation_alias=AliasChoices("topic", "mcqType", "source", "questionSource", "question_source"),
    )
    difficulty: Difficulty = Field(
        default=Difficulty.EASY,
        validation_alias=AliasChoices("difficulty", "difficultyLevel", "difficulty_level"),
    )
    question_count: Number = Field(
        default=DEFAULT_APTITUDE_QUESTION_COUNT,
        validation_alias=AliasChoices(
            "question_count", "noOfQuestions", "questionsCount", "numberOfQuestions", "number_of_questions"
        ),
    )
    per_question_time_minutes: Number = Field(
        default=DEFAULT_APTITUDE_TIME_PER_QUESTION_MINUTES,
        validation_alias=AliasChoices(
            "per_question_time_minutes", "timePerQuestion", "answerTime", "timeToAnswer", "time_to_answer"
        ),
    )

    @field_validator("question_count", "per_question_time_minutes", mode="before")
    @classmethod
    def coerce_counts(cls, v: Any) -> Number:
        return coerce_number(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v: Any) -> Any:
        return _coerce_difficulty(v)


RoundEntry = Union[Question, CodingQuestion, AptitudeQuestion]

ENTRY_MODELS: dict[RoundType, type[_RoundEntry]] = {
    RoundType.GENERAL: Question,
    RoundType.POSITION: Question,
    RoundType.CODING: CodingQuestion,
    RoundType.APTITUDE: AptitudeQuestion,
}


class QuestionSetRounds(BaseModel):
    """The four round collections of a question set."""

    general: list[Question] = Field(default_factory=list)
    position: list[Question] = Field(default_factory=list)
    coding: list[CodingQuestion] = Field(default_factory=list)
    aptitude: list[AptitudeQuestion] = Field(default_factory=list)


class ShuffleFlags(BaseModel):
    """Per-round shuffle toggles."""

    general: bool = False
    position: bool = False
    coding: bool = False
    aptitude: bool = False


class QuestionSetPayload(BaseModel):
    """Wire form of a question-set draft (create, update and load)."""

    question_set_id: Optional[int] = Field(None, description="Set when editing an existing question set")
    position_id: int = Field(..., ge=1, description="Position the question set belongs to")
    organization_id: Optional[int] = Field(None, description="Organization scope for candidate lookup")
    code: Optional[str] = Field(None, max_length=50, description="Question set code; generated if omitted")
    interview_platform: str = Field(default=DEFAULT_INTERVIEW_PLATFORM, max_length=50)
    interview_mode: Optional[str] = Field(None, max_length=50)
    instruction: str = Field(default=DEFAULT_INSTRUCTION, max_length=20000)
    shuffle: ShuffleFlags = Field(default_factory=ShuffleFlags)
    rounds: QuestionSetRounds = Field(default_factory=QuestionSetRounds)

    @field_validator("interview_mode", "code", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class RoundSummary(BaseModel):
    """Computed timing for one round."""

    round: RoundType
    round_number: int
    question_count: int
    duration_minutes: float
    allocated_time: str = Field(description="Allocated time in hh:mm:ss")


class DurationPreview(BaseModel):
    """Computed totals for an unsaved draft."""

    total_questions: int
    total_duration_minutes: float
    total_duration_display: str = Field(description="Total duration in mm:ss")
    is_valid: bool
    rounds: list[RoundSummary]


class QuestionSetView(QuestionSetPayload):
    """A loaded question set with its derived values."""

    version: int = 1
    total_questions: int = 0
    total_duration_minutes: float = 0.0
    round_times: dict[str, str] = Field(default_factory=dict)


class QuestionSetListItem(BaseModel):
    """Summary row for question sets of a position."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    position_id: int
    version: int
    total_questions: int
    total_duration_minutes: float
    interview_platform: str
    interview_mode: Optional[str] = None
    general_questions_count: int
    position_questions_count: int
    coding_questions_count: int
    aptitude_questions_count: int
    is_active: bool


class SubmissionReport(BaseModel):
    """Outcome of a question-set save and candidate fan-out."""

    success: bool = True
    mode: Literal["created", "updated"]
    question_set_id: int
    code: str
    position_id: int
    total_questions: int
    total_duration_minutes: float
    round_times: dict[str, str]
    candidates_resolved: int = 0
    candidates_updated: int = 0
    failed_steps: list[str] = Field(default_factory=list)
    failed_candidates: list[int] = Field(default_factory=list)

    @property
    def has_partial_failures(self) -> bool:
        return bool(self.failed_steps or self.failed_candidates)


class PositionContext(BaseModel):
    """Position details used to build generation requests."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    code: Optional[str] = None
    title: str = ""
    domain: Optional[str] = None
    min_experience: int = 0
    max_experience: int = 0
    mandatory_skills: list[str] = Field(default_factory=list)
    optional_skills: list[str] = Field(default_factory=list)


class CandidateRef(BaseModel):
    """A candidate bound to a position."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None


class AssessmentStatePayload(BaseModel):
    """Per-candidate assessment progress record written by the fan-out."""

    candidate_id: int
    position_id: int
    question_set_id: int
    total_rounds_assigned: int = 0
    total_rounds_completed: int = 0
    total_interview_time_minutes: int = 0

    round1_assigned: bool = False
    round1_completed: bool = False
    round1_allocated_time: str = "00:00:00"
    round2_assigned: bool = False
    round2_completed: bool = False
    round2_allocated_time: str = "00:00:00"
    round3_assigned: bool = False
    round3_completed: bool = False
    round3_allocated_time: str = "00:00:00"
    round4_assigned: bool = False
    round4_completed: bool = False
    round4_allocated_time: str = "00:00:00"

    is_assessment_completed: bool = False
    is_report_generated: bool = False


class QuestionSetRecord(BaseModel):
    """Aggregate columns written by the persistence orchestrator."""

    organization_id: Optional[int] = None
    position_id: int
    code: str
    interview_platform: str = DEFAULT_INTERVIEW_PLATFORM
    interview_mode: Optional[str] = None
    instruction: Optional[str] = None
    shuffle: dict[str, bool] = Field(default_factory=dict)
    rounds: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    total_questions: int = 0
    total_duration_minutes: float = 0.0
    general_questions_count: int = 0
    position_questions_count: int = 0
    coding_questions_count: int = 0
    aptitude_questions_count: int = 0


class StoredQuestionSet(QuestionSetRecord):
    """An aggregate row as read back from the store."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    version: int = 1
    is_active: bool = True
