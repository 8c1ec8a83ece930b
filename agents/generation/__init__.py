"""
Question generation helpers.

Each helper talks to the generation backend over a short-lived websocket
channel and feeds results into a QuestionSetDraft.
"""

from agents.generation.channel import GenerationChannel, default_channel_factory, read_result
from agents.generation.context import GenerationContext
from agents.generation.library import PreviewItem, QuestionLibrarySearch
from agents.generation.reveal import RevealEvent, reveal
from agents.generation.stream import AIQuestionStream, GenerationSession, StreamState

__all__ = [
    "AIQuestionStream",
    "GenerationChannel",
    "GenerationContext",
    "GenerationSession",
    "PreviewItem",
    "QuestionLibrarySearch",
    "RevealEvent",
    "StreamState",
    "default_channel_factory",
    "read_result",
    "reveal",
]
