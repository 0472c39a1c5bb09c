"""Episode lineage: which stored episode a viewed episode really is."""

from labelsync.lineage.errors import (
    IncompatibleDatasetError,
    LineageError,
    LineageUnavailableError,
    MalformedLineageError,
)
from labelsync.lineage.models import DatasetInfo, LineageRecord
from labelsync.lineage.parser import (
    canonical_target_for,
    parse_lineage_document,
    parse_lineage_line,
    parse_source_repo_id,
)
from labelsync.lineage.resolver import (
    DatasetLineage,
    LineageResolver,
    LineageSource,
    LineageStatus,
)
from labelsync.lineage.source import DatasetHostClient

__all__ = [
    "DatasetHostClient",
    "DatasetInfo",
    "DatasetLineage",
    "IncompatibleDatasetError",
    "LineageError",
    "LineageRecord",
    "LineageResolver",
    "LineageSource",
    "LineageStatus",
    "LineageUnavailableError",
    "MalformedLineageError",
    "canonical_target_for",
    "parse_lineage_document",
    "parse_lineage_line",
    "parse_source_repo_id",
]
