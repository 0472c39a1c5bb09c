"""Conversion between annotation records and store rows.

Rows use the column layout shared by every backend: text episode IDs,
``frame_idx`` for the frame index, tag sets as sorted lists and the item
map as JSON.
"""

import json
from collections.abc import Mapping
from typing import Any

from labelsync.annotations.models import (
    NO_ITEMS_KEY,
    EpisodeRecord,
    FrameRecord,
    normalize_items,
)

# Persisted in place of an empty item map so "edited, no items" differs
# from a row that was never given an item map
NO_ITEMS_MARKER: dict[str, int] = {NO_ITEMS_KEY: 1}

EPISODE_COLUMNS: tuple[str, ...] = (
    "org_id",
    "dataset_id",
    "episode_id",
    "labeller_id",
    "quality_tag",
    "key_notes",
    "items",
    "arms_used",
    "remarks",
    "updated_at",
)

FRAME_COLUMNS: tuple[str, ...] = (
    "org_id",
    "dataset_id",
    "episode_id",
    "frame_idx",
    "labeller_id",
    "phase_tags",
    "issue_tags",
    "notes",
    "updated_at",
)

EPISODE_CONFLICT_KEY: tuple[str, ...] = ("org_id", "dataset_id", "episode_id")
FRAME_CONFLICT_KEY: tuple[str, ...] = ("org_id", "dataset_id", "episode_id", "frame_idx")


def persisted_items(items: Mapping[str, int]) -> dict[str, int]:
    """Item map as written to the store."""
    stripped = normalize_items(items)
    return stripped or dict(NO_ITEMS_MARKER)


def loaded_items(value: Any) -> dict[str, int]:
    """Item map as read back from the store (JSON text or object)."""
    if value is None:
        return {}
    if isinstance(value, str):
        value = json.loads(value)
    if value == NO_ITEMS_MARKER:
        return {}
    return dict(value)


def episode_to_row(record: EpisodeRecord) -> dict[str, Any]:
    return {
        "org_id": record.org_id,
        "dataset_id": record.dataset_id,
        "episode_id": str(record.episode_id),
        "labeller_id": record.labeller_id,
        "quality_tag": record.quality_tag.value if record.quality_tag else None,
        "key_notes": sorted(tag.value for tag in record.key_notes),
        "items": persisted_items(record.items),
        "arms_used": record.arms_used.value if record.arms_used else None,
        "remarks": record.remarks,
        "updated_at": record.updated_at,
    }


def row_to_episode(row: Mapping[str, Any]) -> EpisodeRecord:
    return EpisodeRecord(
        org_id=row["org_id"],
        dataset_id=row["dataset_id"],
        episode_id=int(row["episode_id"]),
        labeller_id=row.get("labeller_id"),
        quality_tag=row.get("quality_tag"),
        key_notes=row.get("key_notes") or [],
        items=loaded_items(row.get("items")),
        arms_used=row.get("arms_used"),
        remarks=row.get("remarks") or "",
        updated_at=row.get("updated_at"),
    )


def frame_to_row(record: FrameRecord) -> dict[str, Any]:
    return {
        "org_id": record.org_id,
        "dataset_id": record.dataset_id,
        "episode_id": str(record.episode_id),
        "frame_idx": record.frame_index,
        "labeller_id": record.labeller_id,
        "phase_tags": sorted(tag.value for tag in record.phase_tags),
        "issue_tags": sorted(tag.value for tag in record.issue_tags),
        "notes": record.notes,
        "updated_at": record.updated_at,
    }


def row_to_frame(row: Mapping[str, Any]) -> FrameRecord:
    return FrameRecord(
        org_id=row["org_id"],
        dataset_id=row["dataset_id"],
        episode_id=int(row["episode_id"]),
        frame_index=row["frame_idx"],
        labeller_id=row.get("labeller_id"),
        phase_tags=row.get("phase_tags") or [],
        issue_tags=row.get("issue_tags") or [],
        notes=row.get("notes") or "",
        updated_at=row.get("updated_at"),
    )
