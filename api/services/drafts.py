"""
Question-set draft aggregate and validation gate.

A draft holds the four rounds plus shared metadata for one editing
session. All mutations are synchronous and perform no I/O.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional
import logging

from pydantic import AliasChoices, ValidationError

from api.schemas.question_sets import (
    ENTRY_MODELS,
    MANDATORY_ROUNDS,
    ROUND_ORDER,
    AptitudeQuestion,
    CodingQuestion,
    PositionContext,
    Provenance,
    Question,
    QuestionSetPayload,
    QuestionSetRounds,
    RoundEntry,
    RoundType,
    ShuffleFlags,
)
from core.constants import (
    DEFAULT_ANSWER_TIME_MINUTES,
    DEFAULT_APTITUDE_QUESTION_COUNT,
    DEFAULT_APTITUDE_TIME_PER_QUESTION_MINUTES,
    DEFAULT_CODING_DURATION_MINUTES,
    DEFAULT_INSTRUCTION,
    DEFAULT_INTERVIEW_PLATFORM,
    DEFAULT_PREPARE_TIME_SECONDS,
    STARTER_GENERAL_QUESTIONS,
)
from core.exceptions import QuestionSetValidationError
from core.utils import durations
from core.utils.formatting import format_round_time
from core.utils.validators import coerce_number

logger = logging.getLogger(__name__)

ROUND_LABELS = {
    RoundType.GENERAL: "General Questions (Round 1)",
    RoundType.POSITION: "Position Specific (Round 2)",
    RoundType.CODING: "Coding Questions (Round 3)",
    RoundType.APTITUDE: "Aptitude Questions (Round 4)",
}


def as_round(round_type: Any) -> RoundType:
    """Coerce a round tag to RoundType, raising a validation error if unknown."""
    try:
        return RoundType(getattr(round_type, "value", round_type))
    except ValueError:
        raise QuestionSetValidationError(f"Unknown round type: {round_type!r}") from None


@dataclass
class RoundDefaults:
    """Values pre-filled in a round's "add new" control."""

    prepare_time_seconds: int | float = DEFAULT_PREPARE_TIME_SECONDS
    answer_time_minutes: int | float = DEFAULT_ANSWER_TIME_MINUTES
    coding_duration_minutes: int | float = DEFAULT_CODING_DURATION_MINUTES
    aptitude_question_count: int | float = DEFAULT_APTITUDE_QUESTION_COUNT
    aptitude_time_per_question_minutes: int | float = DEFAULT_APTITUDE_TIME_PER_QUESTION_MINUTES


@dataclass
class QuestionSetDraft:
    """In-memory question set being edited."""

    position_id: int
    question_set_id: Optional[int] = None
    organization_id: Optional[int] = None
    code: Optional[str] = None
    interview_platform: str = DEFAULT_INTERVIEW_PLATFORM
    interview_mode: Optional[str] = None
    instruction: str = DEFAULT_INSTRUCTION
    shuffle: dict[RoundType, bool] = field(
        default_factory=lambda: {r: False for r in ROUND_ORDER}
    )
    rounds: dict[RoundType, list[RoundEntry]] = field(
        default_factory=lambda: {r: [] for r in ROUND_ORDER}
    )
    defaults: dict[RoundType, RoundDefaults] = field(
        default_factory=lambda: {r: RoundDefaults() for r in ROUND_ORDER}
    )

    # ==================== Construction ==================== #

    @classmethod
    def for_position(
        cls,
        position: PositionContext | int,
        organization_id: Optional[int] = None,
        with_starter_questions: bool = True,
    ) -> "QuestionSetDraft":
        """Open a new draft for a position, optionally seeded with the starter questions."""
        position_id = position if isinstance(position, int) else position.id
        draft = cls(position_id=position_id, organization_id=organization_id)
        if with_starter_questions:
            for text in STARTER_GENERAL_QUESTIONS:
                draft.add_question(RoundType.GENERAL, {"text": text})
        return draft

    @classmethod
    def from_payload(cls, payload: QuestionSetPayload) -> "QuestionSetDraft":
        """Build a draft from its wire form."""
        draft = cls(
            position_id=payload.position_id,
            question_set_id=payload.question_set_id,
            organization_id=payload.organization_id,
            code=payload.code,
            interview_platform=payload.interview_platform or DEFAULT_INTERVIEW_PLATFORM,
            interview_mode=payload.interview_mode,
            instruction=payload.instruction or DEFAULT_INSTRUCTION,
        )
        for round_type in ROUND_ORDER:
            draft.shuffle[round_type] = getattr(payload.shuffle, round_type.value)
            draft.rounds[round_type] = [
                entry.model_copy() for entry in getattr(payload.rounds, round_type.value)
            ]
        return draft

    def to_payload(self) -> QuestionSetPayload:
        """Serialize the draft to its wire form."""
        return QuestionSetPayload(
            question_set_id=self.question_set_id,
            position_id=self.position_id,
            organization_id=self.organization_id,
            code=self.code,
            interview_platform=self.interview_platform,
            interview_mode=self.interview_mode,
            instruction=self.instruction,
            shuffle=ShuffleFlags(**{r.value: self.shuffle[r] for r in ROUND_ORDER}),
            rounds=QuestionSetRounds(**{r.value: list(self.rounds[r]) for r in ROUND_ORDER}),
        )

    # ==================== Mutations ==================== #

    def add_question(self, round_type: Any, payload: Mapping[str, Any] | RoundEntry) -> RoundEntry:
        """
        Append a manually entered question to a round.

        Missing timing fields are filled from the round's defaults and a
        numeric id is assigned when the payload carries none.

        Raises:
            QuestionSetValidationError: If the payload does not fit the round
        """
        round_type = as_round(round_type)
        entry = self._build_entry(round_type, payload)
        if entry.id is None:
            entry = entry.model_copy(update={"id": self._next_id(round_type)})
        if round_type in (RoundType.GENERAL, RoundType.POSITION) and not entry.text.strip():
            raise QuestionSetValidationError("Question text cannot be empty", [round_type.value])
        self.rounds[round_type].append(entry)
        return entry

    def insert_question(self, round_type: Any, entry: RoundEntry, at_top: bool = False) -> RoundEntry:
        """Insert an already-built entry (AI or library sourced) without assigning an id."""
        round_type = as_round(round_type)
        if not isinstance(entry, ENTRY_MODELS[round_type]):
            raise QuestionSetValidationError(
                f"{type(entry).__name__} cannot be added to the {round_type.value} round",
                [round_type.value],
            )
        if at_top:
            self.rounds[round_type].insert(0, entry)
        else:
            self.rounds[round_type].append(entry)
        return entry

    def update_question_field(self, round_type: Any, identity: str, field_name: str, value: Any) -> RoundEntry:
        """
        Set one field on a question identified by id (or text).

        Raises:
            KeyError: If no question in the round has that identity
            QuestionSetValidationError: If the field is unknown or the value invalid
        """
        round_type = as_round(round_type)
        model = ENTRY_MODELS[round_type]
        if field_name not in model.model_fields or field_name == "id":
            raise QuestionSetValidationError(
                f"Unknown field '{field_name}' for {round_type.value} questions", [round_type.value]
            )
        index = self._index_of(round_type, identity)
        current = self.rounds[round_type][index]
        try:
            updated = model.model_validate({**current.model_dump(), field_name: value})
        except ValidationError as e:
            raise QuestionSetValidationError(
                f"Invalid value for '{field_name}': {e.errors()[0]['msg']}", [round_type.value]
            ) from e
        self.rounds[round_type][index] = updated
        return updated

    def replace_text(self, round_type: Any, identity: str, text: str) -> None:
        """Overwrite a question's text in place (used while revealing generated text)."""
        round_type = as_round(round_type)
        index = self._index_of(round_type, identity)
        current = self.rounds[round_type][index]
        self.rounds[round_type][index] = current.model_copy(update={"text": text})

    def remove_question(self, round_type: Any, identity: str) -> RoundEntry:
        """
        Remove a question identified by id (or text).

        Raises:
            KeyError: If no question in the round has that identity
        """
        round_type = as_round(round_type)
        index = self._index_of(round_type, identity)
        return self.rounds[round_type].pop(index)

    def move_question(self, round_type: Any, identity: str, offset: int) -> None:
        """Move a question up (negative offset) or down within its round."""
        round_type = as_round(round_type)
        entries = self.rounds[round_type]
        index = self._index_of(round_type, identity)
        target = max(0, min(len(entries) - 1, index + offset))
        entries.insert(target, entries.pop(index))

    def set_shuffle(self, round_type: Any, enabled: bool) -> None:
        self.shuffle[as_round(round_type)] = bool(enabled)

    def set_defaults(self, round_type: Any, **values: Any) -> RoundDefaults:
        """Change the values pre-filled for new questions in a round; malformed numbers become 0."""
        defaults = self.defaults[as_round(round_type)]
        for name, value in values.items():
            if not hasattr(defaults, name):
                raise QuestionSetValidationError(f"Unknown default '{name}'")
            setattr(defaults, name, coerce_number(value))
        return defaults

    # ==================== Derived values ==================== #

    def round_count(self, round_type: Any) -> int:
        return len(self.rounds[as_round(round_type)])

    def total_questions(self) -> int:
        return sum(len(entries) for entries in self.rounds.values())

    def round_duration(self, round_type: Any) -> float:
        round_type = as_round(round_type)
        return durations.round_duration(round_type, self.rounds[round_type])

    def total_duration(self) -> float:
        """Total duration in minutes, recomputed from the current round contents."""
        return sum(self.round_duration(r) for r in ROUND_ORDER)

    def round_times(self) -> dict[str, str]:
        """Allocated time per round in hh:mm:ss, keyed round1..round4."""
        return {f"round{r.number}": format_round_time(self.round_duration(r)) for r in ROUND_ORDER}

    def question_texts(self) -> list[str]:
        """Every non-empty question text present in any round."""
        texts = []
        for round_type in ROUND_ORDER:
            for entry in self.rounds[round_type]:
                text = getattr(entry, "text", None)
                if text:
                    texts.append(text)
        return texts

    def find(self, round_type: Any, identity: str) -> Optional[RoundEntry]:
        round_type = as_round(round_type)
        for entry in self.rounds[round_type]:
            if entry.identity == str(identity):
                return entry
        return None

    # ==================== Internals ==================== #

    def _index_of(self, round_type: RoundType, identity: str) -> int:
        for index, entry in enumerate(self.rounds[round_type]):
            if entry.identity == str(identity):
                return index
        raise KeyError(f"No {round_type.value} question with id or text {identity!r}")

    def _next_id(self, round_type: RoundType) -> str:
        numeric = [int(e.id) for e in self.rounds[round_type] if e.id is not None and e.id.isdigit()]
        return str(max(numeric, default=0) + 1)

    def _build_entry(self, round_type: RoundType, payload: Mapping[str, Any] | RoundEntry) -> RoundEntry:
        model = ENTRY_MODELS[round_type]
        if isinstance(payload, model):
            return payload.model_copy()
        if not isinstance(payload, Mapping):
            raise QuestionSetValidationError(
                f"Cannot add {type(payload).__name__} to the {round_type.value} round", [round_type.value]
            )

        defaults = self.defaults[round_type]
        data = dict(payload)
        if model is Question:
            _set_default(data, model, "prepare_time_seconds", defaults.prepare_time_seconds)
            _set_default(data, model, "answer_time_minutes", defaults.answer_time_minutes)
            data.setdefault("provenance", Provenance.MANUAL)
            if isinstance(data.get("text"), str):
                data["text"] = data["text"].strip()
        elif model is CodingQuestion:
            _set_default(data, model, "duration_minutes", defaults.coding_duration_minutes)
        elif model is AptitudeQuestion:
            _set_default(data, model, "question_count", defaults.aptitude_question_count)
            _set_default(data, model, "per_question_time_minutes", defaults.aptitude_time_per_question_minutes)

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise QuestionSetValidationError(
                f"Invalid {round_type.value} question: {e.errors()[0]['msg']}", [round_type.value]
            ) from e


def _set_default(data: dict[str, Any], model: type, field_name: str, value: Any) -> None:
    """Fill a field unless the payload already carries it under any accepted key."""
    alias = model.model_fields[field_name].validation_alias
    names = {field_name}
    if isinstance(alias, AliasChoices):
        names.update(choice for choice in alias.choices if isinstance(choice, str))
    if not names.intersection(data):
        data[field_name] = value


# ==================== Validation gate ==================== #

def empty_mandatory_rounds(draft: QuestionSetDraft) -> list[RoundType]:
    """Mandatory rounds that currently hold no questions."""
    return [r for r in MANDATORY_ROUNDS if not draft.rounds[r]]


def is_valid(draft: QuestionSetDraft) -> bool:
    """A draft may be submitted once general and position rounds are both non-empty."""
    return not empty_mandatory_rounds(draft)


def validate_draft(draft: QuestionSetDraft) -> None:
    """
    Raise if the draft cannot be submitted.

    Raises:
        QuestionSetValidationError: Naming every empty mandatory round
    """
    missing = empty_mandatory_rounds(draft)
    if missing:
        labels = " and ".join(ROUND_LABELS[r] for r in missing)
        logger.info(
            f"Rejected question set for position {draft.position_id}: empty {[r.value for r in missing]}"
        )
        raise QuestionSetValidationError(
            f"{labels} {'are' if len(missing) > 1 else 'is'} mandatory. "
            "Please add at least one question to each.",
            [r.value for r in missing],
        )


def draft_from_rounds(
    position_id: int,
    rounds: Mapping[Any, Iterable[Mapping[str, Any] | RoundEntry]],
    **metadata: Any,
) -> QuestionSetDraft:
    """Convenience constructor used by loaders and tests."""
    draft = QuestionSetDraft(position_id=position_id, **metadata)
    for round_type, entries in rounds.items():
        for entry in entries:
            draft.add_question(round_type, entry)
    return draft
