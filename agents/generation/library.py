"""Company question library search with a staged preview list."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from agents.generation.channel import ChannelFactory
from agents.generation.context import GenerationContext
from agents.generation.reveal import RevealEvent, reveal
from agents.generation.stream import GenerationSession, RevealListener, StreamState
from api.schemas.question_sets import TEXT_ROUNDS, Provenance, Question, RoundType
from api.services.drafts import QuestionSetDraft, as_round
from core.config import settings
from core.exceptions import GenerationError, QuestionSetValidationError
from core.utils.formatting import normalize_question_text
from core.utils.validators import is_blank

logger = logging.getLogger(__name__)


@dataclass
class PreviewItem:
    """A library question staged for review."""

    id: str
    full_text: str
    text: str = ""

    @property
    def revealed(self) -> bool:
        return self.text == self.full_text


class QuestionLibrarySearch(GenerationSession):
    """Fetch a batch of questions from a company library and reveal them into a preview."""

    def __init__(
        self,
        draft: QuestionSetDraft,
        channel_factory: Optional[ChannelFactory] = None,
        batch_size: Optional[int] = None,
        question_type: Optional[str] = None,
        reveal_interval_ms: Optional[int] = None,
        item_pause_ms: Optional[int] = None,
        listener: Optional[RevealListener] = None,
    ):
        super().__init__(draft, channel_factory, listener)
        self.batch_size = batch_size or settings.library_batch_size
        self.question_type = question_type or settings.library_question_type
        self.reveal_interval_ms = (
            settings.library_reveal_interval_ms if reveal_interval_ms is None else reveal_interval_ms
        )
        self.item_pause_ms = settings.library_item_pause_ms if item_pause_ms is None else item_pause_ms
        self.company_name: Optional[str] = None
        self.preview: list[PreviewItem] = []

    async def search(self, company_name: str, context: GenerationContext) -> list[PreviewItem]:
        """
        Replace the preview with a fresh batch from ``company_name``'s library.

        Raises:
            QuestionSetValidationError: If the company name is blank
            GenerationError: On channel failure or when nothing new was returned
            GenerationCancelledError: If superseded or closed before completion
        """
        if is_blank(company_name):
            raise QuestionSetValidationError("Please enter a company name")
        return await self._start(self._run(company_name.strip(), context))

    async def _run(self, company_name: str, context: GenerationContext) -> list[PreviewItem]:
        self.company_name = company_name
        self.preview = []

        existing = set(self.draft.question_texts())
        request = context.to_request(
            number_of_questions=self.batch_size,
            company_name=company_name,
            question_type=self.question_type,
        )
        texts = await self._fetch(request)

        fresh: list[str] = []
        for raw in texts:
            text = normalize_question_text(raw)
            if text and text not in existing and text not in fresh:
                fresh.append(text)
        if not fresh:
            error = GenerationError(f"No new questions found for {company_name}.")
            self._fail(error)
            raise error

        self._set_state(StreamState.REVEALING)
        try:
            for index, text in enumerate(fresh):
                item = PreviewItem(id=f"lib_{uuid.uuid4().hex[:12]}", full_text=text)
                self.preview.append(item)
                await reveal(text, self.reveal_interval_ms, lambda partial, item=item: self._apply(item, partial))
                if index < len(fresh) - 1 and self.item_pause_ms > 0:
                    await asyncio.sleep(self.item_pause_ms / 1000)
        except asyncio.CancelledError:
            self.preview = []
            self._set_state(StreamState.CANCELLED)
            raise

        self._set_state(StreamState.DONE)
        logger.info(f"Library search for {company_name} staged {len(self.preview)} questions")
        return list(self.preview)

    async def _apply(self, item: PreviewItem, partial: str) -> bool:
        item.text = partial
        await self._notify(
            RevealEvent(target="preview", item_id=item.id, text=partial, complete=item.revealed)
        )
        return True

    def add_question_from_library(self, round_type: Any, preview_id: str) -> Question:
        """
        Promote a preview item to the top of a round.

        Raises:
            QuestionSetValidationError: For a non free-text round or a text already in the draft
            KeyError: If no preview item has that id
        """
        round_type = as_round(round_type)
        if round_type not in TEXT_ROUNDS:
            raise QuestionSetValidationError(
                f"Library questions can only be added to the general or position round, not {round_type.value}",
                [round_type.value],
            )
        item = self._find(preview_id)
        if item.full_text in self.draft.question_texts():
            raise QuestionSetValidationError("This question is already in the question set", [round_type.value])

        defaults = self.draft.defaults[round_type]
        question = Question(
            text=item.full_text,
            prepare_time_seconds=defaults.prepare_time_seconds,
            answer_time_minutes=defaults.answer_time_minutes,
            provenance=Provenance.LIBRARY,
        )
        self.draft.insert_question(round_type, question, at_top=True)
        self.preview.remove(item)
        return question

    def dismiss(self, preview_id: str) -> None:
        self.preview.remove(self._find(preview_id))

    def _find(self, preview_id: str) -> PreviewItem:
        for item in self.preview:
            if item.id == preview_id:
                return item
        raise KeyError(f"No preview item {preview_id!r}")
