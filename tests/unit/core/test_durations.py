"""
Tests for round duration arithmetic.
Covers each round formula, legacy key spellings, malformed input and
the running total staying consistent across edits.
"""

import random

import pytest

from api.schemas.question_sets import RoundType
from api.services.drafts import QuestionSetDraft
from core.utils import durations


class TestRoundFormulas:
    """Test the per-round duration formulas."""

    def test_general_round_mixes_seconds_and_minutes(self):
        """Two questions of 10s + 2min and 15s + 3min total 5.41667 minutes."""
        questions = [
            {"prepare_time_seconds": 10, "answer_time_minutes": 2},
            {"prepare_time_seconds": 15, "answer_time_minutes": 3},
        ]
        assert durations.round_duration("general", questions) == pytest.approx(325 / 60)

    def test_position_round_uses_same_formula(self):
        questions = [{"prepare_time_seconds": 20, "answer_time_minutes": 1}]
        assert durations.round_duration(RoundType.POSITION, questions) == pytest.approx(80 / 60)

    def test_coding_round_sums_durations(self):
        questions = [{"duration_minutes": 15}, {"duration_minutes": 30}]
        assert durations.round_duration("coding", questions) == 45

    def test_aptitude_round_multiplies_count_by_time(self):
        questions = [{"question_count": 5, "per_question_time_minutes": 2}]
        assert durations.round_duration("aptitude", questions) == 10

    def test_total_across_rounds(self):
        """Two 10s + 2min general questions and one 15s + 1min position question."""
        rounds = {
            "general": [
                {"prepare_time_seconds": 10, "answer_time_minutes": 2},
                {"prepare_time_seconds": 10, "answer_time_minutes": 2},
            ],
            "position": [{"prepare_time_seconds": 15, "answer_time_minutes": 1}],
            "coding": [],
            "aptitude": [],
        }
        assert durations.total_duration(rounds) == pytest.approx(5.58333, abs=1e-4)

    def test_empty_rounds_are_zero(self):
        assert durations.total_duration({}) == 0
        assert durations.round_duration("coding", None) == 0

    def test_unknown_round_rejected(self):
        with pytest.raises(ValueError, match="Unknown round type"):
            durations.round_duration("bonus", [{"duration_minutes": 5}])


class TestInputTolerance:
    """Test legacy key spellings and malformed numbers."""

    def test_camel_case_keys(self):
        rounds = {
            "general": [{"timeToPrepare": 30, "timeToAnswer": 1}],
            "coding": [{"codeDuration": "20"}],
            "aptitude": [{"noOfQuestions": 3, "timePerQuestion": 2}],
        }
        result = durations.round_durations(rounds)
        assert result["general"] == pytest.approx(1.5)
        assert result["coding"] == 20
        assert result["aptitude"] == 6

    @pytest.mark.parametrize("bad_value", ["", None, "abc", "-5", float("nan"), True])
    def test_malformed_values_count_as_zero(self, bad_value):
        questions = [{"prepare_time_seconds": bad_value, "answer_time_minutes": 1}]
        assert durations.round_duration("general", questions) == 1

    def test_enum_and_string_keys_agree(self):
        rounds_enum = {RoundType.CODING: [{"duration_minutes": 30}]}
        rounds_str = {"coding": [{"duration_minutes": 30}]}
        assert durations.round_durations(rounds_enum) == durations.round_durations(rounds_str)

    def test_round_times_keyed_by_round_number(self):
        rounds = {"coding": [{"duration_minutes": 90}], "aptitude": [{"question_count": 5, "per_question_time_minutes": 1}]}
        assert durations.round_times(rounds) == {
            "round1": "00:00:00",
            "round2": "00:00:00",
            "round3": "01:30:00",
            "round4": "00:05:00",
        }


class TestRunningTotal:
    """The draft total always equals the closed-form sum of its rounds."""

    @staticmethod
    def closed_form(draft: QuestionSetDraft) -> float:
        general = sum(q.prepare_time_seconds + q.answer_time_minutes * 60 for q in draft.rounds[RoundType.GENERAL]) / 60
        position = sum(q.prepare_time_seconds + q.answer_time_minutes * 60 for q in draft.rounds[RoundType.POSITION]) / 60
        coding = sum(q.duration_minutes for q in draft.rounds[RoundType.CODING])
        aptitude = sum(q.question_count * q.per_question_time_minutes for q in draft.rounds[RoundType.APTITUDE])
        return general + position + coding + aptitude

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_random_edit_sequences(self, seed):
        rng = random.Random(seed)
        draft = QuestionSetDraft(position_id=1)
        payloads = {
            RoundType.GENERAL: lambda: {"text": f"Q{rng.random()}", "prepare_time_seconds": rng.randint(0, 60), "answer_time_minutes": rng.randint(0, 5)},
            RoundType.POSITION: lambda: {"text": f"P{rng.random()}", "prepare_time_seconds": rng.randint(0, 60), "answer_time_minutes": rng.randint(0, 5)},
            RoundType.CODING: lambda: {"duration_minutes": rng.choice([15, 30, 45, 60])},
            RoundType.APTITUDE: lambda: {"question_count": rng.randint(1, 10), "per_question_time_minutes": rng.randint(1, 3)},
        }
        numeric_fields = {
            RoundType.GENERAL: "answer_time_minutes",
            RoundType.POSITION: "prepare_time_seconds",
            RoundType.CODING: "duration_minutes",
            RoundType.APTITUDE: "question_count",
        }

        for _ in range(60):
            round_type = rng.choice(list(payloads))
            entries = draft.rounds[round_type]
            action = rng.choice(["add", "add", "update", "remove"])
            if action == "add" or not entries:
                draft.add_question(round_type, payloads[round_type]())
            elif action == "update":
                target = rng.choice(entries)
                draft.update_question_field(round_type, target.identity, numeric_fields[round_type], rng.randint(0, 20))
            else:
                draft.remove_question(round_type, rng.choice(entries).identity)

            assert draft.total_duration() == pytest.approx(self.closed_form(draft))
