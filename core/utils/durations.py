"""
Round duration arithmetic.

Each round type has its own formula:

- general / position: sum(prepare_seconds + answer_minutes * 60) / 60
- coding: sum(duration_minutes)
- aptitude: sum(question_count * per_question_time_minutes)

Entries may be pydantic models or plain mappings (stored documents and
legacy payloads use camelCase keys). Missing or malformed numbers count
as zero.
"""

from typing import Any, Iterable, Mapping

from core.utils.formatting import format_round_time
from core.utils.validators import coerce_number

GENERAL = "general"
POSITION = "position"
CODING = "coding"
APTITUDE = "aptitude"

_PREPARE_FIELDS = ("prepare_time_seconds", "prepareTime", "timeToPrepare", "time_to_prepare")
_ANSWER_FIELDS = ("answer_time_minutes", "answerTime", "timeToAnswer", "time_to_answer")
_CODING_FIELDS = ("duration_minutes", "duration", "codeDuration", "code_duration")
_COUNT_FIELDS = (
    "question_count", "noOfQuestions", "questionsCount", "numberOfQuestions", "number_of_questions",
)
_PER_QUESTION_FIELDS = (
    "per_question_time_minutes", "timePerQuestion", "answerTime", "timeToAnswer", "time_to_answer",
)


def _read(entry: Any, names: tuple[str, ...]) -> int | float:
    """Return the first usable number found under any of ``names``."""
    for name in names:
        if isinstance(entry, Mapping):
            value = entry.get(name)
        else:
            value = getattr(entry, name, None)
        number = coerce_number(value)
        if number:
            return number
    return 0


def _round_key(round_type: Any) -> str:
    return getattr(round_type, "value", round_type)


def timed_question_minutes(questions: Iterable[Any]) -> float:
    """Duration of a general or position round in minutes."""
    total_seconds = sum(
        _read(q, _PREPARE_FIELDS) + _read(q, _ANSWER_FIELDS) * 60 for q in questions
    )
    return total_seconds / 60


def coding_minutes(questions: Iterable[Any]) -> float:
    """Duration of a coding round in minutes."""
    return sum(_read(q, _CODING_FIELDS) for q in questions)


def aptitude_minutes(questions: Iterable[Any]) -> float:
    """Duration of an aptitude round in minutes."""
    return sum(_read(q, _COUNT_FIELDS) * _read(q, _PER_QUESTION_FIELDS) for q in questions)


_CALCULATORS = {
    GENERAL: timed_question_minutes,
    POSITION: timed_question_minutes,
    CODING: coding_minutes,
    APTITUDE: aptitude_minutes,
}


def round_duration(round_type: Any, questions: Iterable[Any] | None) -> float:
    """
    Compute the duration of one round.

    Args:
        round_type: Round tag (a RoundType or its string value)
        questions: The round's entries

    Returns:
        Duration in minutes (may be fractional)

    Raises:
        ValueError: If the round type is unknown
    """
    key = _round_key(round_type)
    try:
        calculator = _CALCULATORS[key]
    except KeyError:
        raise ValueError(f"Unknown round type: {round_type!r}") from None
    if not questions:
        return 0
    return calculator(questions)


def round_durations(rounds: Mapping[Any, Iterable[Any]]) -> dict[str, float]:
    """Compute every round's duration, keyed by round name."""
    normalized = {_round_key(k): v for k, v in rounds.items()}
    return {
        key: round_duration(key, normalized.get(key) or [])
        for key in (GENERAL, POSITION, CODING, APTITUDE)
    }


def total_duration(rounds: Mapping[Any, Iterable[Any]]) -> float:
    """Sum of all four round durations in minutes."""
    return sum(round_durations(rounds).values())


def round_times(rounds: Mapping[Any, Iterable[Any]]) -> dict[str, str]:
    """Allocated time per round as hh:mm:ss, keyed round1..round4."""
    durations = round_durations(rounds)
    return {
        f"round{index}": format_round_time(durations[key])
        for index, key in enumerate((GENERAL, POSITION, CODING, APTITUDE), start=1)
    }
