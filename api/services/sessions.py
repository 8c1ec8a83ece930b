"""
Editing sessions for the question-set websocket.

A session owns one draft plus its AI stream and library search. Client
commands are plain JSON objects with a ``type`` key; every state change
is pushed back as a ``draft`` message.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from agents.generation import (
    AIQuestionStream,
    GenerationContext,
    QuestionLibrarySearch,
    RevealEvent,
)
from agents.generation.channel import ChannelFactory
from api.schemas.question_sets import PositionContext
from api.services.drafts import QuestionSetDraft
from api.services.interfaces import PositionLookup
from api.services.question_sets import PersistenceOrchestrator, draft_view, preview_draft
from core.exceptions import (
    GenerationCancelledError,
    GenerationError,
    QuestionSetError,
    QuestionSetNotFoundError,
    QuestionSetValidationError,
)

logger = logging.getLogger(__name__)

Sender = Callable[[dict[str, Any]], Awaitable[None]]


def _error_code(error: Exception) -> str:
    if isinstance(error, QuestionSetValidationError):
        return "VALIDATION_ERROR"
    if isinstance(error, QuestionSetNotFoundError):
        return "NOT_FOUND"
    if isinstance(error, GenerationError):
        return "GENERATION_ERROR"
    if isinstance(error, KeyError):
        return "NOT_FOUND"
    return "PERSISTENCE_ERROR"


class EditingSession:
    """Single-owner editing state bound to one websocket connection."""

    def __init__(
        self,
        orchestrator: PersistenceOrchestrator,
        positions: PositionLookup,
        send: Sender,
        organization_id: Optional[int] = None,
        channel_factory: Optional[ChannelFactory] = None,
        reveal_interval_ms: Optional[int] = None,
        library_reveal_interval_ms: Optional[int] = None,
        library_item_pause_ms: Optional[int] = None,
    ):
        self.orchestrator = orchestrator
        self.positions = positions
        self.send = send
        self.organization_id = organization_id
        self.channel_factory = channel_factory
        self._reveal_interval_ms = reveal_interval_ms
        self._library_reveal_interval_ms = library_reveal_interval_ms
        self._library_item_pause_ms = library_item_pause_ms

        self.draft: Optional[QuestionSetDraft] = None
        self.stream: Optional[AIQuestionStream] = None
        self.library: Optional[QuestionLibrarySearch] = None
        self.position: Optional[PositionContext] = None
        self._background: set[asyncio.Task] = set()

        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "load": self._load,
            "add": self._add,
            "update": self._update,
            "remove": self._remove,
            "move": self._move,
            "shuffle": self._shuffle,
            "defaults": self._defaults,
            "generate": self._generate,
            "library_search": self._library_search,
            "library_add": self._library_add,
            "library_dismiss": self._library_dismiss,
            "cancel": self._cancel,
            "submit": self._submit,
        }

    async def handle(self, message: dict[str, Any]) -> None:
        """Dispatch one client command; failures are reported as ``error`` messages."""
        command = message.get("type")
        handler = self._handlers.get(command)
        if handler is None:
            await self._send_error("VALIDATION_ERROR", f"Unknown command: {command!r}")
            return
        if command != "load" and self.draft is None:
            await self._send_error("VALIDATION_ERROR", "No draft loaded. Send a 'load' command first.")
            return
        try:
            await handler(message)
        except (QuestionSetError, KeyError) as e:
            await self._send_error(_error_code(e), _message(e), getattr(e, "rounds", None))

    async def close(self) -> None:
        """Cancel any generation in flight and close its channel."""
        for helper in (self.stream, self.library):
            if helper is not None:
                await helper.close()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.wait(self._background)
        logger.debug("Editing session closed")

    # ==================== Commands ==================== #

    async def _load(self, message: dict[str, Any]) -> None:
        question_set_id = message.get("question_set_id")
        position_id = message.get("position_id")
        if not question_set_id and not position_id:
            raise QuestionSetValidationError("position_id or question_set_id is required")
        # parse before tearing down the current draft
        if question_set_id:
            question_set_id = _positive_int(question_set_id, "question_set_id")
        else:
            position_id = _positive_int(position_id, "position_id")

        await self.close()
        if question_set_id:
            draft = await self.orchestrator.load_draft(question_set_id)
        else:
            draft = QuestionSetDraft.for_position(
                position_id,
                organization_id=self.organization_id,
                with_starter_questions=message.get("starter_questions", True),
            )
        if draft.organization_id is None:
            draft.organization_id = self.organization_id

        self.draft = draft
        self.position = await self.positions.get_position(draft.position_id, self.organization_id)
        self.stream = AIQuestionStream(
            draft,
            channel_factory=self.channel_factory,
            reveal_interval_ms=self._reveal_interval_ms,
            listener=self._on_reveal,
        )
        self.library = QuestionLibrarySearch(
            draft,
            channel_factory=self.channel_factory,
            reveal_interval_ms=self._library_reveal_interval_ms,
            item_pause_ms=self._library_item_pause_ms,
            listener=self._on_reveal,
        )
        await self._send_draft()

    async def _add(self, message: dict[str, Any]) -> None:
        self.draft.add_question(message.get("round"), message.get("question") or {})
        await self._send_draft()

    async def _update(self, message: dict[str, Any]) -> None:
        self.draft.update_question_field(
            message.get("round"), message.get("id"), message.get("field"), message.get("value")
        )
        await self._send_draft()

    async def _remove(self, message: dict[str, Any]) -> None:
        self.draft.remove_question(message.get("round"), message.get("id"))
        await self._send_draft()

    async def _move(self, message: dict[str, Any]) -> None:
        offset = message.get("offset")
        if isinstance(offset, bool) or not isinstance(offset, int):
            raise QuestionSetValidationError("offset must be an integer")
        self.draft.move_question(message.get("round"), message.get("id"), offset)
        await self._send_draft()

    async def _shuffle(self, message: dict[str, Any]) -> None:
        self.draft.set_shuffle(message.get("round"), bool(message.get("enabled")))
        await self._send_draft()

    async def _defaults(self, message: dict[str, Any]) -> None:
        values = message.get("values")
        if not isinstance(values, dict) or not values:
            raise QuestionSetValidationError("values must be a non-empty object")
        self.draft.set_defaults(message.get("round"), **values)
        await self._send_draft()

    async def _generate(self, message: dict[str, Any]) -> None:
        round_type = message.get("round")

        async def run() -> None:
            await self.stream.generate(round_type, self._context())
            await self._send_draft()

        self._spawn(run())

    async def _library_search(self, message: dict[str, Any]) -> None:
        company_name = message.get("company_name") or ""
        if not isinstance(company_name, str) or not company_name.strip():
            raise QuestionSetValidationError("Please enter a company name")

        async def run() -> None:
            await self.library.search(company_name, self._context())
            await self._send_preview()

        self._spawn(run())

    async def _library_add(self, message: dict[str, Any]) -> None:
        self.library.add_question_from_library(message.get("round"), message.get("preview_id"))
        await self._send_draft()

    async def _library_dismiss(self, message: dict[str, Any]) -> None:
        self.library.dismiss(message.get("preview_id"))
        await self._send_preview()

    async def _cancel(self, message: dict[str, Any]) -> None:
        target = message.get("target")
        if target in (None, "generate"):
            await self.stream.cancel()
        if target in (None, "library"):
            await self.library.cancel()
        await self._send_draft()

    async def _submit(self, message: dict[str, Any]) -> None:
        report = await self.orchestrator.submit(self.draft)
        await self.send({"type": "submitted", "report": report.model_dump(mode="json")})
        await self._send_draft()

    # ==================== Internals ==================== #

    def _context(self) -> GenerationContext:
        position = self.position or PositionContext(id=self.draft.position_id)
        return GenerationContext.from_position(position, self.draft.question_texts())

    def _spawn(self, coro) -> None:
        async def guarded() -> None:
            try:
                await coro
            except GenerationCancelledError:
                logger.debug("Generation superseded")
            except (QuestionSetError, KeyError) as e:
                await self._send_error(_error_code(e), _message(e), getattr(e, "rounds", None))

        task = asyncio.create_task(guarded())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _on_reveal(self, event: RevealEvent) -> None:
        await self.send({
            "type": "reveal",
            "target": event.target,
            "id": event.item_id,
            "round": event.round,
            "text": event.text,
            "complete": event.complete,
        })

    async def _send_draft(self) -> None:
        await self.send({
            "type": "draft",
            "draft": draft_view(self.draft).model_dump(mode="json"),
            "preview": preview_draft(self.draft).model_dump(mode="json"),
            "generation_state": self.stream.state.value if self.stream else None,
            "library_state": self.library.state.value if self.library else None,
        })

    async def _send_preview(self) -> None:
        await self.send({
            "type": "preview",
            "company_name": self.library.company_name,
            "items": [{"id": item.id, "text": item.full_text} for item in self.library.preview],
        })

    async def _send_error(self, code: str, message: str, rounds: Optional[list[str]] = None) -> None:
        payload: dict[str, Any] = {"type": "error", "code": code, "message": message}
        if rounds:
            payload["rounds"] = rounds
        await self.send(payload)


def _message(error: Exception) -> str:
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error)


def _positive_int(value: Any, name: str) -> int:
    """Parse a client-supplied id, rejecting anything that is not a positive integer."""
    if isinstance(value, bool):
        raise QuestionSetValidationError(f"{name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise QuestionSetValidationError(f"{name} must be a positive integer") from None
    if number < 1 or (isinstance(value, float) and not value.is_integer()):
        raise QuestionSetValidationError(f"{name} must be a positive integer")
    return number
