"""
AI question generation for a draft.

A request opens a generation channel, waits for one question, then
reveals it character by character into a new entry of the target round.
Only one request is active per stream; a new request cancels the prior
one and discards whatever it had revealed so far.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from agents.generation.channel import ChannelFactory, default_channel_factory, read_result
from agents.generation.context import GenerationContext
from agents.generation.reveal import RevealEvent, reveal
from api.schemas.question_sets import TEXT_ROUNDS, Provenance, Question, RoundType
from api.services.drafts import QuestionSetDraft, as_round
from core.config import settings
from core.exceptions import GenerationCancelledError, GenerationError, QuestionSetValidationError
from core.utils.formatting import normalize_question_text

logger = logging.getLogger(__name__)

RevealListener = Callable[[RevealEvent], Optional[Awaitable[Any]]]


class StreamState(str, Enum):
    """Lifecycle of one generation request."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_RESPONSE = "awaiting_response"
    REVEALING = "revealing"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


class GenerationSession:
    """
    Shared request handling for generation-backed draft helpers.

    Subclasses implement ``_run``; this class owns the single active task,
    its channel and the state machine.
    """

    def __init__(
        self,
        draft: QuestionSetDraft,
        channel_factory: Optional[ChannelFactory] = None,
        listener: Optional[RevealListener] = None,
    ):
        self.draft = draft
        self.channel_factory = channel_factory or default_channel_factory
        self.listener = listener
        self.state = StreamState.IDLE
        self.error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def cancel(self) -> None:
        """Cancel the active request, if any, and wait for its cleanup."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def close(self) -> None:
        await self.cancel()

    async def _start(self, coro) -> Any:
        await self.cancel()
        task = asyncio.create_task(coro)
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            raise GenerationCancelledError("Generation request was cancelled")
        return task.result()

    def _set_state(self, state: StreamState) -> None:
        logger.debug(f"{type(self).__name__} state {self.state.value} -> {state.value}")
        self.state = state

    async def _fetch(self, request: dict[str, Any]) -> list[str]:
        """
        Send one request over a fresh channel and return the generated texts.

        The channel is closed before returning, whatever the outcome.
        """
        self.error = None
        self._set_state(StreamState.CONNECTING)
        channel = self.channel_factory()
        try:
            await channel.open()
            self._set_state(StreamState.AWAITING_RESPONSE)
            await channel.send(request)
            return await read_result(channel)
        except asyncio.CancelledError:
            self._set_state(StreamState.CANCELLED)
            raise
        except GenerationError as e:
            self._fail(e)
            raise
        finally:
            await channel.close()

    def _fail(self, error: GenerationError) -> None:
        self.error = str(error)
        self._set_state(StreamState.ERROR)
        logger.warning(f"{type(self).__name__} request failed: {error}")

    async def _notify(self, event: RevealEvent) -> None:
        if self.listener is None:
            return
        result = self.listener(event)
        if asyncio.iscoroutine(result):
            await result


class AIQuestionStream(GenerationSession):
    """Generate one question at a time into the general or position round."""

    def __init__(
        self,
        draft: QuestionSetDraft,
        channel_factory: Optional[ChannelFactory] = None,
        reveal_interval_ms: Optional[int] = None,
        listener: Optional[RevealListener] = None,
    ):
        super().__init__(draft, channel_factory, listener)
        self.reveal_interval_ms = (
            settings.ai_reveal_interval_ms if reveal_interval_ms is None else reveal_interval_ms
        )

    async def generate(self, round_type: Any, context: GenerationContext) -> Optional[Question]:
        """
        Request a question and reveal it into ``round_type``.

        Returns:
            The completed question, or None if the user removed it mid-reveal

        Raises:
            QuestionSetValidationError: If the round does not accept free-text questions
            GenerationError: On channel failure, empty result or duplicate text
            GenerationCancelledError: If superseded or closed before completion
        """
        round_type = as_round(round_type)
        if round_type not in TEXT_ROUNDS:
            raise QuestionSetValidationError(
                f"AI questions can only be added to the general or position round, not {round_type.value}",
                [round_type.value],
            )
        return await self._start(self._run(round_type, context))

    async def _run(self, round_type: RoundType, context: GenerationContext) -> Optional[Question]:
        # The draft may have changed since the context was built
        existing = set(self.draft.question_texts())
        context = context.model_copy(
            update={"previous_questions": list(dict.fromkeys([*context.previous_questions, *existing]))}
        )

        texts = await self._fetch(context.to_request(number_of_questions=1, stream=False))
        text = next((normalize_question_text(t) for t in texts if normalize_question_text(t)), "")
        if not text:
            error = GenerationError("No question was generated. Please try again.")
            self._fail(error)
            raise error
        if text in existing or text in context.previous_questions:
            error = GenerationError("The AI service returned a question that is already in this set.")
            self._fail(error)
            raise error

        defaults = self.draft.defaults[round_type]
        question = Question(
            id=f"ai_{uuid.uuid4().hex[:12]}",
            text="",
            prepare_time_seconds=defaults.prepare_time_seconds,
            answer_time_minutes=defaults.answer_time_minutes,
            provenance=Provenance.AI,
        )
        self.draft.insert_question(round_type, question)
        self._set_state(StreamState.REVEALING)

        async def apply(partial: str) -> bool:
            if self.draft.find(round_type, question.id) is None:
                return False
            self.draft.replace_text(round_type, question.id, partial)
            await self._notify(
                RevealEvent(
                    target="draft",
                    item_id=question.id,
                    text=partial,
                    complete=partial == text,
                    round=round_type.value,
                )
            )
            return True

        try:
            completed = await reveal(text, self.reveal_interval_ms, apply)
        except asyncio.CancelledError:
            if self.draft.find(round_type, question.id) is not None:
                self.draft.remove_question(round_type, question.id)
            self._set_state(StreamState.CANCELLED)
            raise

        self._set_state(StreamState.DONE)
        if not completed:
            logger.info(f"Generated question {question.id} was removed while revealing")
            return None
        logger.info(f"Generated question {question.id} added to {round_type.value} round")
        return self.draft.find(round_type, question.id)
