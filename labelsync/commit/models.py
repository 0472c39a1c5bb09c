"""Batch commit models.

Contains the commit steps, per-step timing and the receipt returned by a
successful commit.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from labelsync.annotations.models import CanonicalTarget


class CommitStep(str, Enum):
    """Steps of a batch commit, in execution order."""

    REGISTER_LABELLER = "register_labeller"
    DELETE_FRAMES = "delete_frames"
    UPSERT_EPISODE = "upsert_episode"
    UPSERT_FRAMES = "upsert_frames"


class CommitStepTiming(BaseModel):
    """Timing information for a single commit step."""

    step: CommitStep
    started_at: datetime
    ended_at: datetime
    duration_ms: float = Field(ge=0)
    skipped: bool = False
    skip_reason: str | None = None


class CommitReceipt(BaseModel):
    """Outcome of a successful batch commit."""

    model_config = ConfigDict(frozen=True)

    target: CanonicalTarget
    labeller_id: str
    committed_at: datetime
    episode_written: bool = False
    frames_written: int = Field(default=0, ge=0)
    frames_deleted: int = Field(default=0, ge=0)
    clean: bool = Field(
        default=True,
        description="False when edits made during the commit keep the cache dirty",
    )
    step_timings: list[CommitStepTiming] = Field(default_factory=list)
    total_time_ms: float = Field(default=0.0, ge=0)
