"""Parsing of line-delimited lineage documents.

Each line is parsed independently; a line that is not valid JSON or not a
valid record is skipped without affecting the others.
"""

import json

from pydantic import ValidationError

from labelsync.annotations.models import CanonicalTarget, DatasetIdentity
from labelsync.lineage.errors import MalformedLineageError
from labelsync.lineage.models import LineageRecord
from labelsync.observability.logging import get_logger
from labelsync.observability.metrics import LINEAGE_SKIPPED_LINES

logger = get_logger(__name__)


def parse_lineage_line(line: str) -> LineageRecord | None:
    """Parse one line; returns None for blank or malformed lines."""
    if not line.strip():
        return None
    try:
        return LineageRecord.model_validate(json.loads(line))
    except (json.JSONDecodeError, ValidationError) as e:
        LINEAGE_SKIPPED_LINES.inc()
        logger.warning("lineage_line_skipped", line_preview=line[:120], error=str(e))
        return None


def parse_lineage_document(text: str) -> dict[int, LineageRecord]:
    """Parse a whole document into episode_index -> record.

    A later line for the same episode index replaces an earlier one.
    Lines end at a line feed only; other Unicode line separators are legal
    inside JSON strings.
    """
    records: dict[int, LineageRecord] = {}
    for line in text.split("\n"):
        record = parse_lineage_line(line)
        if record is not None:
            records[record.episode_index] = record
    return records


def parse_source_repo_id(source_repo_id: str) -> DatasetIdentity:
    """Split 'org/dataset[/more]' into org and the rejoined dataset path.

    Raises:
        MalformedLineageError: fewer than two segments, or an empty part
    """
    org, sep, dataset = source_repo_id.partition("/")
    if not sep:
        raise MalformedLineageError(
            f"source_repo_id {source_repo_id!r} has fewer than two segments",
            source_repo_id=source_repo_id,
        )
    if not org or not dataset:
        raise MalformedLineageError(
            f"source_repo_id {source_repo_id!r} has an empty org or dataset",
            source_repo_id=source_repo_id,
        )
    return DatasetIdentity(org=org, dataset=dataset)


def canonical_target_for(
    viewed: DatasetIdentity,
    episode_index: int,
    records: dict[int, LineageRecord],
) -> CanonicalTarget:
    """Canonical target of one episode given a parsed lineage mapping.

    Raises:
        MalformedLineageError: the entry has lineage fields that do not parse
    """
    record = records.get(episode_index)
    if record is None or not record.has_lineage:
        return CanonicalTarget.passthrough(viewed, episode_index)

    source = parse_source_repo_id(record.source_repo_id)
    return CanonicalTarget(
        org=source.org,
        dataset=source.dataset,
        episode=record.source_episode_index,
    )
