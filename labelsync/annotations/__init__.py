"""Episode and frame annotations: vocabularies, records and stores.

Records are keyed by their canonical identity (org, dataset, episode and,
for frames, frame index). Stores expose keyed reads, replace-or-insert
writes and keyed deletes.
"""

from labelsync.annotations.enums import (
    ArmsUsed,
    IssueTag,
    KeyNoteTag,
    PhaseTag,
    QualityTag,
)
from labelsync.annotations.models import (
    CanonicalTarget,
    DatasetIdentity,
    EpisodeRecord,
    FrameRecord,
    normalize_items,
    validate_labeller_id,
)
from labelsync.annotations.store import AnnotationStore

__all__ = [
    # Enums
    "ArmsUsed",
    "IssueTag",
    "KeyNoteTag",
    "PhaseTag",
    "QualityTag",
    # Models
    "CanonicalTarget",
    "DatasetIdentity",
    "EpisodeRecord",
    "FrameRecord",
    "normalize_items",
    "validate_labeller_id",
    # Store
    "AnnotationStore",
]
