"""
Tests for AI question generation into a draft.
"""

import asyncio

import pytest

from agents.generation import AIQuestionStream, GenerationContext, StreamState
from api.schemas.question_sets import Provenance, RoundType
from api.services.drafts import QuestionSetDraft
from core.constants import STARTER_GENERAL_QUESTIONS
from core.exceptions import (
    GenerationCancelledError,
    GenerationError,
    QuestionSetValidationError,
)


@pytest.fixture
def draft(position):
    return QuestionSetDraft.for_position(position)


@pytest.fixture
def context(position, draft):
    return GenerationContext.from_position(position, draft.question_texts())


def ai_questions(draft, round_type=RoundType.GENERAL):
    return [q for q in draft.rounds[round_type] if q.provenance == Provenance.AI]


class TestGenerate:
    """Test a single generation request."""

    @pytest.mark.asyncio
    async def test_question_appended_to_round(self, draft, context, make_channel, make_factory, frames):
        channel = make_channel([frames["question"]("How do you design an idempotent API?")])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        question = await stream.generate("general", context)

        assert question.text == "How do you design an idempotent API?"
        assert question.id.startswith("ai_")
        assert question.provenance == Provenance.AI
        assert question.prepare_time_seconds == 10
        assert question.answer_time_minutes == 2
        assert draft.rounds[RoundType.GENERAL][-1] == question
        assert draft.round_count("general") == 3
        assert stream.state == StreamState.DONE
        assert channel.closed

    @pytest.mark.asyncio
    async def test_request_payload(self, draft, context, make_channel, make_factory, frames):
        draft.add_question("position", {"text": "Explain MVCC"})
        channel = make_channel([frames["question"]("What is a B-tree?")])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        await stream.generate("position", context)

        request = channel.sent[0]
        assert request["jobRole"] == "Backend Engineer"
        assert request["numberOfQuestions"] == 1
        assert request["stream"] is False
        assert request["mandatorySkills"] == ["Python", "PostgreSQL"]
        # texts added after the context was built are still excluded
        assert set(request["previousQuestions"]) == {*STARTER_GENERAL_QUESTIONS, "Explain MVCC"}

    @pytest.mark.asyncio
    async def test_uses_round_defaults(self, draft, context, make_channel, make_factory, frames):
        draft.set_defaults("position", prepare_time_seconds=30, answer_time_minutes=5)
        channel = make_channel([frames["question"]("Walk me through a recent incident.")])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        question = await stream.generate(RoundType.POSITION, context)

        assert question.prepare_time_seconds == 30
        assert question.answer_time_minutes == 5

    @pytest.mark.asyncio
    async def test_reveal_events(self, draft, context, make_channel, make_factory, frames):
        events = []
        channel = make_channel([frames["question"]("Why?")])
        stream = AIQuestionStream(
            draft, channel_factory=make_factory(channel), reveal_interval_ms=1, listener=events.append
        )

        question = await stream.generate("general", context)

        assert [e.text for e in events] == ["W", "Wh", "Why", "Why?"]
        assert [e.complete for e in events] == [False, False, False, True]
        assert {e.item_id for e in events} == {question.id}
        assert {e.target for e in events} == {"draft"}
        assert {e.round for e in events} == {"general"}

    @pytest.mark.asyncio
    async def test_streamed_delta_frames(self, draft, context, make_channel, make_factory):
        channel = make_channel([
            {"type": "delta", "content": "What is "},
            {"type": "delta", "content": "backpressure?"},
            {"type": "done"},
        ])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        question = await stream.generate("general", context)

        assert question.text == "What is backpressure?"


class TestGenerateFailures:
    """Test failed, empty and duplicate results."""

    @pytest.mark.asyncio
    async def test_error_frame(self, draft, context, make_channel, make_factory):
        channel = make_channel([{"success": False, "error": "Failed to generate AI questions."}])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        with pytest.raises(GenerationError, match="Failed to generate"):
            await stream.generate("general", context)

        assert stream.state == StreamState.ERROR
        assert stream.error == "Failed to generate AI questions."
        assert draft.round_count("general") == 2
        assert channel.closed

    @pytest.mark.asyncio
    async def test_connection_failure(self, draft, context, make_channel, make_factory):
        channel = make_channel(open_error=GenerationError("Connection to AI service failed."))
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        with pytest.raises(GenerationError, match="Connection to AI service failed"):
            await stream.generate("general", context)

        assert stream.state == StreamState.ERROR
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_malformed_frame_ends_in_error(self, draft, context, make_channel, make_factory):
        channel = make_channel([{"type": "delta", "content": "What", "index": "one"}, {"type": "done"}])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        with pytest.raises(GenerationError, match="Malformed delta frame index"):
            await stream.generate("general", context)

        assert stream.state == StreamState.ERROR
        assert ai_questions(draft) == []
        assert channel.closed

    @pytest.mark.asyncio
    async def test_empty_result(self, draft, context, make_channel, make_factory, frames):
        channel = make_channel([frames["questions"](["", "   "])])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        with pytest.raises(GenerationError, match="No question was generated"):
            await stream.generate("general", context)

        assert stream.state == StreamState.ERROR
        assert ai_questions(draft) == []

    @pytest.mark.asyncio
    async def test_duplicate_result_rejected(self, draft, context, make_channel, make_factory, frames):
        channel = make_channel([frames["question"]("  Tell me about   yourself? ")])
        stream = AIQuestionStream(draft, channel_factory=make_factory(channel), reveal_interval_ms=0)

        with pytest.raises(GenerationError, match="already in this set"):
            await stream.generate("general", context)

        assert draft.round_count("general") == 2

    @pytest.mark.asyncio
    async def test_non_text_round_rejected(self, draft, context, make_factory):
        factory = make_factory()
        stream = AIQuestionStream(draft, channel_factory=factory, reveal_interval_ms=0)

        with pytest.raises(QuestionSetValidationError):
            await stream.generate("coding", context)

        assert factory.created == []
        assert stream.state == StreamState.IDLE


class TestSupersession:
    """Test cancellation and replacement of an active request."""

    @pytest.mark.asyncio
    async def test_new_request_cancels_pending_one(self, draft, context, make_channel, make_factory, frames):
        hanging = make_channel(hang=True)
        answering = make_channel([frames["question"]("What is eventual consistency?")])
        stream = AIQuestionStream(draft, channel_factory=make_factory(hanging, answering), reveal_interval_ms=0)

        first = asyncio.create_task(stream.generate("general", context))
        await hanging.waiting.wait()

        second = await stream.generate("general", context)

        with pytest.raises(GenerationCancelledError):
            await first
        assert hanging.closed
        assert second.text == "What is eventual consistency?"
        assert [q.text for q in ai_questions(draft)] == ["What is eventual consistency?"]
        assert stream.state == StreamState.DONE

    @pytest.mark.asyncio
    async def test_cancel_mid_reveal_discards_placeholder(self, draft, context, make_channel, make_factory, frames):
        started = asyncio.Event()
        channel = make_channel([frames["question"]("Explain the GIL in CPython")])
        stream = AIQuestionStream(
            draft,
            channel_factory=make_factory(channel),
            reveal_interval_ms=50,
            listener=lambda event: started.set(),
        )

        task = asyncio.create_task(stream.generate("general", context))
        await started.wait()
        assert stream.is_active
        await stream.cancel()

        with pytest.raises(GenerationCancelledError):
            await task
        assert ai_questions(draft) == []
        assert stream.state == StreamState.CANCELLED
        assert not stream.is_active

    @pytest.mark.asyncio
    async def test_removed_while_revealing(self, draft, context, make_channel, make_factory, frames):
        channel = make_channel([frames["question"]("Describe a cache stampede")])

        def remove_on_first(event):
            if event.text == "D":
                draft.remove_question("general", event.item_id)

        stream = AIQuestionStream(
            draft, channel_factory=make_factory(channel), reveal_interval_ms=1, listener=remove_on_first
        )

        result = await stream.generate("general", context)

        assert result is None
        assert ai_questions(draft) == []
        assert stream.state == StreamState.DONE

    @pytest.mark.asyncio
    async def test_close_without_request(self, draft):
        stream = AIQuestionStream(draft, reveal_interval_ms=0)
        await stream.close()
        assert stream.state == StreamState.IDLE
