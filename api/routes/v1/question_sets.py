"""
Question set authoring endpoints.

Provides REST endpoints to create, update, load and preview question
sets, and a websocket for interactive editing with AI generation and
library search.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, WebSocket, WebSocketDisconnect

from agents.generation.channel import ChannelFactory
from api.dependencies import (
    get_channel_factory,
    get_orchestrator,
    get_organization_id,
    get_position_lookup,
)
from api.schemas.question_sets import (
    DurationPreview,
    QuestionSetPayload,
    SubmissionReport,
)
from api.services.drafts import QuestionSetDraft
from api.services.interfaces import PositionLookup
from api.services.question_sets import PersistenceOrchestrator, preview_draft
from api.services.sessions import EditingSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/question-sets", tags=["question-sets"])


def _draft_for(payload: QuestionSetPayload, organization_id: Optional[int]) -> QuestionSetDraft:
    draft = QuestionSetDraft.from_payload(payload)
    if draft.organization_id is None:
        draft.organization_id = organization_id
    return draft


@router.post(
    "",
    response_model=SubmissionReport,
    status_code=201,
    summary="Create Question Set",
    description="Save a new question set and assign it to every candidate bound to the position.",
)
async def create_question_set(
    payload: QuestionSetPayload,
    organization_id: Optional[int] = Depends(get_organization_id),
    orchestrator: PersistenceOrchestrator = Depends(get_orchestrator),
):
    if payload.question_set_id:
        raise HTTPException(
            status_code=400,
            detail="question_set_id must not be set on create; use PUT /question-sets/{id}",
        )
    return await orchestrator.submit(_draft_for(payload, organization_id))


@router.put(
    "/{question_set_id}",
    response_model=SubmissionReport,
    summary="Update Question Set",
    description="Overwrite a question set and refresh the assessment state of every bound candidate.",
)
async def update_question_set(
    payload: QuestionSetPayload,
    question_set_id: int = Path(..., ge=1, description="Question set to update"),
    organization_id: Optional[int] = Depends(get_organization_id),
    orchestrator: PersistenceOrchestrator = Depends(get_orchestrator),
):
    payload = payload.model_copy(update={"question_set_id": question_set_id})
    return await orchestrator.submit(_draft_for(payload, organization_id))


@router.post(
    "/preview",
    response_model=DurationPreview,
    summary="Preview Durations",
    description="Compute totals and per-round allocated times for an unsaved question set.",
)
async def preview_question_set(payload: QuestionSetPayload):
    return preview_draft(QuestionSetDraft.from_payload(payload))


@router.get(
    "/position/{position_id}",
    summary="List Question Sets For Position",
)
async def list_question_sets(
    position_id: int = Path(..., ge=1),
    orchestrator: PersistenceOrchestrator = Depends(get_orchestrator),
):
    """Active question sets of a position, most recently updated first."""
    items = await orchestrator.list_for_position(position_id)
    return {"position_id": position_id, "question_sets": items, "total": len(items)}


@router.get(
    "/{question_set_id}",
    summary="Get Question Set",
    description="Load a question set with its computed totals, ready for editing.",
)
async def get_question_set(
    question_set_id: int = Path(..., ge=1),
    orchestrator: PersistenceOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_view(question_set_id)


@router.websocket("/sessions")
async def editing_session(
    websocket: WebSocket,
    organization_id: Optional[int] = Query(None),
    orchestrator: PersistenceOrchestrator = Depends(get_orchestrator),
    positions: PositionLookup = Depends(get_position_lookup),
    channel_factory: ChannelFactory = Depends(get_channel_factory),
):
    """
    Interactive editing session.

    Client commands: load, add, update, remove, move, shuffle, defaults,
    generate, library_search, library_add, library_dismiss, cancel, submit.
    The server answers with draft, reveal, preview, submitted and error
    messages.
    """
    await websocket.accept()
    session = EditingSession(
        orchestrator,
        positions,
        send=websocket.send_json,
        organization_id=organization_id,
        channel_factory=channel_factory,
    )
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                message = None
            if not isinstance(message, dict):
                await websocket.send_json(
                    {"type": "error", "code": "VALIDATION_ERROR", "message": "Messages must be JSON objects"}
                )
                continue
            await session.handle(message)
    except WebSocketDisconnect:
        logger.info("Editing session disconnected")
    finally:
        await session.close()
