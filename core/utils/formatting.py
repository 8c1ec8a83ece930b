"""Formatting utilities for round timing and question text."""

import math
import re


def _to_seconds(minutes: float) -> int:
    # half-up rounding to the nearest second
    return int(math.floor(minutes * 60 + 0.5))


def format_round_time(minutes: float | int | None) -> str:
    """
    Format a duration in minutes as hh:mm:ss.

    The value is rounded to the nearest second. Empty or zero
    durations render as "00:00:00".

    Args:
        minutes: Duration in (possibly fractional) minutes

    Returns:
        Duration string in hh:mm:ss format
    """
    if not minutes or minutes <= 0:
        return "00:00:00"
    total_seconds = _to_seconds(minutes)
    hours = total_seconds // 3600
    mins = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def format_duration(minutes: float | int | None) -> str:
    """
    Format a duration in minutes as mm:ss for display.

    Minutes are not wrapped into hours, so 75.5 renders as "75:30".
    """
    if not minutes or minutes <= 0:
        return "00:00"
    total_seconds = _to_seconds(minutes)
    return f"{total_seconds // 60:02d}:{total_seconds % 60:02d}"


def normalize_question_text(text: str | None) -> str:
    """Collapse internal whitespace and strip a question text."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip()
