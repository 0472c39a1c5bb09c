"""Lineage and dataset metadata models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LineageRecord(BaseModel):
    """One line of a dataset's episode metadata document.

    Derived (clipped) episodes name the episode they were cut from via
    ``source_repo_id`` and ``source_episode_index``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    episode_index: int = Field(..., ge=0)
    # Carried as given; only the lineage fields are validated
    tasks: Any = Field(default=None)
    length: Any = Field(default=None)
    source_repo_id: str | None = Field(default=None)
    source_episode_index: int | None = Field(default=None, ge=0)

    @property
    def has_lineage(self) -> bool:
        """True when both lineage fields are present."""
        return bool(self.source_repo_id) and self.source_episode_index is not None


class DatasetInfo(BaseModel):
    """The subset of a dataset's info document this package relies on.

    Unknown keys are kept so callers can read fields such as ``fps``.
    """

    model_config = ConfigDict(extra="allow")

    codebase_version: str | None = Field(default=None)
    features: dict[str, Any] = Field(..., description="Feature schema; required")
    fps: float | None = Field(default=None)
    total_episodes: int | None = Field(default=None)
    robot_type: str | None = Field(default=None)
