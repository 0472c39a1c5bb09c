"""Session state and playback-time helpers."""

import math
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Protocol

# Asked before discarding edits, committing with pairing warnings and
# deleting every label of an episode
UNSAVED_CHANGES_MESSAGE = "You have unsaved changes.\nLeave without saving?"
CLEAR_ALL_MESSAGE = (
    "Are you sure you want to delete all labels for this episode?\nThis cannot be undone."
)
PAIRING_WARNINGS_HEADER = "Issue tags are not paired with recovery tags:"

ConfirmCallback = Callable[[str], Awaitable[bool]]


class SessionState(str, Enum):
    """Lifecycle of the open episode."""

    IDLE = "idle"  # nothing open, or the last load failed
    LOADING = "loading"
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


class PlaybackClock(Protocol):
    """Source of the current playback position."""

    @property
    def current_time(self) -> float:
        """Playback position in seconds."""
        ...


def frame_index_at(seconds: float, fps: float) -> int:
    """Frame index shown at a playback position.

    Rounds half up (2.5 frames is frame 3) and never goes below zero.
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    return max(0, math.floor(seconds * fps + 0.5))


def pairing_confirmation_message(warnings: list[str]) -> str:
    lines = [PAIRING_WARNINGS_HEADER, *(f"- {warning}" for warning in warnings), "Save anyway?"]
    return "\n".join(lines)


async def always_confirm(message: str) -> bool:
    """Confirm callback for headless use: every prompt is accepted."""
    return True
