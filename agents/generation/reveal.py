"""Typing-style reveal of an already received text."""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class RevealEvent:
    """Progress of one revealed text, pushed to session listeners."""

    target: str  # "draft" or "preview"
    item_id: str
    text: str
    complete: bool
    round: Optional[str] = None


async def reveal(
    text: str,
    interval_ms: int,
    on_progress: Callable[[str], Any],
) -> bool:
    """
    Feed ``on_progress`` a growing prefix of ``text`` one character at a time.

    With a zero interval the full text is applied in a single step. The
    callback may be sync or async; returning ``False`` stops the reveal.

    Returns:
        True if the whole text was revealed
    """
    if interval_ms <= 0 or not text:
        result = on_progress(text)
        if inspect.isawaitable(result):
            result = await result
        return result is not False

    delay = interval_ms / 1000
    for end in range(1, len(text) + 1):
        result = on_progress(text[:end])
        if inspect.isawaitable(result):
            result = await result
        if result is False:
            return False
        if end < len(text):
            await asyncio.sleep(delay)
    return True
