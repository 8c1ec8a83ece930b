"""
Websocket client for the question generation backend.

A channel is scoped to a single request: open, send one JSON request,
read frames until a result, completion marker or error arrives, close.

Accepted server frames:

- ``{"success": true, "data": {"question": "..."}}`` or ``{"data": {"questions": [...]}}``
- ``{"type": "delta", "content": "...", "index": 0}`` ... ``{"type": "done"}``
- ``{"type": "error", "message": "..."}`` or ``{"success": false, "error": "..."}``
"""

import json
import logging
from typing import Any, AsyncIterator, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from core.config import settings
from core.exceptions import GenerationError

logger = logging.getLogger(__name__)


class GenerationChannel:
    """One duplex connection to the generation service."""

    def __init__(self, url: str, connect: Callable[..., Any] = websockets.connect):
        self.url = url
        self._connect = connect
        self._ws = None
        self.closed = False

    async def open(self) -> None:
        """Connect to the generation service."""
        logger.debug(f"Opening generation channel to {self.url}")
        try:
            self._ws = await self._connect(self.url)
        except (OSError, WebSocketException) as e:
            raise GenerationError("Connection to AI service failed.") from e

    async def send(self, payload: dict[str, Any]) -> None:
        if self._ws is None:
            raise GenerationError("Generation channel is not open")
        try:
            await self._ws.send(json.dumps(payload))
        except ConnectionClosed as e:
            raise GenerationError("Generation channel closed before the request was sent") from e

    async def frames(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded frames until the server closes the connection."""
        if self._ws is None:
            raise GenerationError("Generation channel is not open")
        while True:
            try:
                message = await self._ws.recv()
            except ConnectionClosed:
                return
            try:
                frame = json.loads(message)
            except (TypeError, ValueError) as e:
                raise GenerationError("Malformed frame from AI service") from e
            if not isinstance(frame, dict):
                raise GenerationError("Malformed frame from AI service")
            yield frame

    async def close(self) -> None:
        """Close the connection; safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        if self._ws is not None:
            try:
                await self._ws.close()
            except (OSError, WebSocketException) as e:
                logger.warning(f"Error closing generation channel: {e}")
        logger.debug("Generation channel closed")

    async def __aenter__(self) -> "GenerationChannel":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


ChannelFactory = Callable[[], GenerationChannel]


def default_channel_factory() -> GenerationChannel:
    return GenerationChannel(settings.ai_questions_ws_url)


def _questions_from_data(data: Any) -> list[str]:
    if isinstance(data, str):
        return [data]
    if not isinstance(data, dict):
        return []
    if isinstance(data.get("questions"), list):
        return [q for q in data["questions"] if isinstance(q, str)]
    if isinstance(data.get("question"), str):
        return [data["question"]]
    return []


async def read_result(channel: GenerationChannel) -> list[str]:
    """
    Consume frames until the request completes.

    Returns:
        The generated question texts, in order (may be empty)

    Raises:
        GenerationError: On an error frame or if the channel closes mid-stream
    """
    fragments: dict[int, list[str]] = {}

    async for frame in channel.frames():
        if "success" in frame:
            if not frame.get("success"):
                raise GenerationError(frame.get("error") or "Failed to generate AI questions.")
            return _questions_from_data(frame.get("data"))

        frame_type: Optional[str] = frame.get("type")
        if frame_type == "delta":
            try:
                index = int(frame.get("index", 0) or 0)
            except (TypeError, ValueError):
                raise GenerationError(f"Malformed delta frame index: {frame.get('index')!r}") from None
            fragments.setdefault(index, []).append(str(frame.get("content") or ""))
        elif frame_type == "done":
            if fragments:
                return ["".join(fragments[i]) for i in sorted(fragments)]
            return _questions_from_data(frame.get("data") or frame)
        elif frame_type == "error":
            raise GenerationError(frame.get("message") or frame.get("error") or "AI service error")
        else:
            logger.debug(f"Ignoring unknown generation frame: {frame_type!r}")

    raise GenerationError("Generation channel closed before completion")
