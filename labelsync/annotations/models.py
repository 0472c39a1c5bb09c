"""Annotation domain models.

Contains the Pydantic models for episode-level and frame-level records
and the identities they are stored under.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from labelsync.annotations.enums import (
    ArmsUsed,
    IssueTag,
    KeyNoteTag,
    PhaseTag,
    QualityTag,
)

# Fields a patch may never change: they are the record's storage key
EPISODE_KEY_FIELDS: frozenset[str] = frozenset({"org_id", "dataset_id", "episode_id"})
FRAME_KEY_FIELDS: frozenset[str] = EPISODE_KEY_FIELDS | {"frame_index"}

# Reserved for the stored "edited, no items" marker
NO_ITEMS_KEY = "__no_items__"


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def normalize_items(items: Mapping[str, int]) -> dict[str, int]:
    """Drop entries whose quantity is zero or negative.

    A missing key already means "none of this item".
    """
    return {name: quantity for name, quantity in items.items() if quantity > 0}


def validate_labeller_id(labeller_id: str) -> str:
    """Return the trimmed labeller ID, rejecting empty or spaced values."""
    value = (labeller_id or "").strip()
    if not value:
        raise ValueError("Labeller ID is required")
    if any(ch.isspace() for ch in value):
        raise ValueError("Labeller ID cannot contain spaces")
    return value


class DatasetIdentity(BaseModel):
    """The dataset a labeller is looking at: '<org>/<dataset path>'."""

    model_config = ConfigDict(frozen=True)

    org: str = Field(..., min_length=1, description="Owning organisation")
    dataset: str = Field(..., min_length=1, description="Dataset path, may contain '/'")

    @classmethod
    def from_repo_id(cls, repo_id: str) -> "DatasetIdentity":
        """Split a repository ID on its first '/'."""
        org, _, dataset = repo_id.strip().strip("/").partition("/")
        return cls(org=org, dataset=dataset)

    @property
    def repo_id(self) -> str:
        return f"{self.org}/{self.dataset}"

    def __str__(self) -> str:
        return self.repo_id


class CanonicalTarget(BaseModel):
    """The (org, dataset, episode) triple annotations are stored under."""

    model_config = ConfigDict(frozen=True)

    org: str = Field(..., min_length=1)
    dataset: str = Field(..., min_length=1)
    episode: int = Field(..., ge=0)

    @classmethod
    def passthrough(cls, dataset: DatasetIdentity, episode: int) -> "CanonicalTarget":
        """Target equal to the viewed identity (no lineage)."""
        return cls(org=dataset.org, dataset=dataset.dataset, episode=episode)

    @property
    def repo_id(self) -> str:
        return f"{self.org}/{self.dataset}"

    def __str__(self) -> str:
        return f"{self.repo_id}#{self.episode}"


class EpisodeRecord(BaseModel):
    """Episode-level annotation.

    The quantity map never holds zero or negative values; they are
    dropped on validation, so an absent key means quantity zero.
    """

    model_config = ConfigDict(frozen=True)

    org_id: str = Field(..., min_length=1)
    dataset_id: str = Field(..., min_length=1)
    episode_id: int = Field(..., ge=0)
    labeller_id: str | None = Field(default=None, description="Last writer")
    quality_tag: QualityTag | None = Field(default=None, description="None means unset")
    key_notes: frozenset[KeyNoteTag] = Field(default_factory=frozenset)
    items: dict[str, int] = Field(default_factory=dict, description="Item name -> quantity")
    arms_used: ArmsUsed | None = Field(default=None)
    remarks: str = Field(default="")
    updated_at: datetime | None = Field(default=None)

    @field_validator("items")
    @classmethod
    def _strip_non_positive(cls, value: dict[str, int]) -> dict[str, int]:
        if NO_ITEMS_KEY in value:
            raise ValueError(f"{NO_ITEMS_KEY!r} is not a valid item name")
        return normalize_items(value)

    @classmethod
    def defaults(cls, target: CanonicalTarget) -> "EpisodeRecord":
        """Blank draft: quality unset, no tags, no items, no remarks."""
        return cls(org_id=target.org, dataset_id=target.dataset, episode_id=target.episode)

    @property
    def target(self) -> CanonicalTarget:
        return CanonicalTarget(org=self.org_id, dataset=self.dataset_id, episode=self.episode_id)

    def merged(self, patch: Mapping[str, Any]) -> "EpisodeRecord":
        """Return a copy with the patch applied and re-validated."""
        _reject_key_changes(patch, EPISODE_KEY_FIELDS)
        return EpisodeRecord.model_validate({**self.model_dump(), **patch})


class FrameRecord(BaseModel):
    """Frame-level annotation; frame_index is the join key for a frame."""

    model_config = ConfigDict(frozen=True)

    org_id: str = Field(..., min_length=1)
    dataset_id: str = Field(..., min_length=1)
    episode_id: int = Field(..., ge=0)
    frame_index: int = Field(..., ge=0)
    labeller_id: str | None = Field(default=None)
    phase_tags: frozenset[PhaseTag] = Field(default_factory=frozenset)
    issue_tags: frozenset[IssueTag] = Field(default_factory=frozenset)
    notes: str = Field(default="")
    updated_at: datetime | None = Field(default=None)

    @classmethod
    def defaults(cls, target: CanonicalTarget, frame_index: int) -> "FrameRecord":
        return cls(
            org_id=target.org,
            dataset_id=target.dataset,
            episode_id=target.episode,
            frame_index=frame_index,
        )

    @property
    def target(self) -> CanonicalTarget:
        return CanonicalTarget(org=self.org_id, dataset=self.dataset_id, episode=self.episode_id)

    @property
    def has_content(self) -> bool:
        """True when any tag or a non-blank note is set."""
        return bool(self.phase_tags or self.issue_tags or self.notes.strip())

    def merged(self, patch: Mapping[str, Any]) -> "FrameRecord":
        """Return a copy with the patch applied and re-validated."""
        _reject_key_changes(patch, FRAME_KEY_FIELDS)
        return FrameRecord.model_validate({**self.model_dump(), **patch})


def _reject_key_changes(patch: Mapping[str, Any], key_fields: frozenset[str]) -> None:
    touched = key_fields.intersection(patch)
    if touched:
        raise ValueError(f"Patch may not change key fields: {', '.join(sorted(touched))}")
