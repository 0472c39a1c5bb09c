"""Test factories for creating test data."""

from tests.factories.annotations import (
    EpisodeRecordFactory,
    FlakyAnnotationStore,
    FrameRecordFactory,
)

__all__ = [
    "EpisodeRecordFactory",
    "FlakyAnnotationStore",
    "FrameRecordFactory",
]
