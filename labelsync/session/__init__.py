"""Annotation session: one open episode, its edits and its saves."""

from labelsync.session.controller import AnnotationSessionController, SessionNotOpenError
from labelsync.session.models import (
    ConfirmCallback,
    PlaybackClock,
    SessionState,
    always_confirm,
    frame_index_at,
)

__all__ = [
    "AnnotationSessionController",
    "ConfirmCallback",
    "PlaybackClock",
    "SessionNotOpenError",
    "SessionState",
    "always_confirm",
    "frame_index_at",
]
