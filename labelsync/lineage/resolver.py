"""Canonical identity resolution.

Maps the viewed (dataset, episode) onto the (org, dataset, episode) its
annotations are stored under. Clipped episodes of a derived dataset store
their annotations under the source episode; everything else stores under
the viewed identity.

Lineage is fetched once per dataset and cached for the lifetime of the
resolver, so frame edits never trigger a fetch.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from labelsync.annotations.models import CanonicalTarget, DatasetIdentity
from labelsync.lineage.errors import (
    IncompatibleDatasetError,
    LineageUnavailableError,
    MalformedLineageError,
)
from labelsync.lineage.models import LineageRecord
from labelsync.lineage.parser import canonical_target_for, parse_lineage_document
from labelsync.observability.logging import get_logger
from labelsync.observability.metrics import LINEAGE_RESOLUTIONS

logger = get_logger(__name__)


class LineageSource(Protocol):
    """What the resolver needs from the dataset host."""

    async def get_dataset_version(self, repo_id: str) -> str: ...

    async def fetch_lineage_document(self, repo_id: str, version: str) -> str: ...


class LineageStatus(str, Enum):
    """How a dataset's lineage lookup ended."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True)
class DatasetLineage:
    """Parsed lineage of one dataset version."""

    dataset: DatasetIdentity
    version: str | None
    status: LineageStatus
    records: dict[int, LineageRecord] = field(default_factory=dict)


class LineageResolver:
    """Resolve viewed episodes to canonical storage targets.

    Resolution never raises for lineage problems: an unsupported dataset
    version, a missing lineage document and a malformed lineage entry all
    resolve to the viewed identity.
    """

    def __init__(self, source: LineageSource) -> None:
        self._source = source
        self._cache: dict[str, DatasetLineage] = {}
        self._inflight: dict[str, asyncio.Task[tuple[DatasetLineage, bool]]] = {}

    async def resolve(self, dataset: DatasetIdentity, episode_index: int) -> CanonicalTarget:
        """Canonical target for one viewed episode."""
        lineage = await self.load(dataset)
        passthrough = CanonicalTarget.passthrough(dataset, episode_index)

        try:
            target = canonical_target_for(dataset, episode_index, lineage.records)
        except MalformedLineageError as e:
            LINEAGE_RESOLUTIONS.labels(outcome="malformed").inc()
            logger.warning(
                "lineage_entry_malformed",
                repo_id=dataset.repo_id,
                episode=episode_index,
                source_repo_id=e.source_repo_id,
            )
            return passthrough

        if lineage.status is not LineageStatus.AVAILABLE:
            outcome = lineage.status.value
        elif target == passthrough:
            outcome = "passthrough"
        else:
            outcome = "derived"
        LINEAGE_RESOLUTIONS.labels(outcome=outcome).inc()

        logger.debug(
            "lineage_resolved",
            repo_id=dataset.repo_id,
            episode=episode_index,
            target=str(target),
            outcome=outcome,
        )
        return target

    async def load(self, dataset: DatasetIdentity) -> DatasetLineage:
        """Lineage of a dataset, fetched at most once while cached.

        Concurrent callers for the same dataset share one fetch.
        """
        key = dataset.repo_id
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(dataset))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))

        lineage, cacheable = await asyncio.shield(task)
        if cacheable:
            self._cache[key] = lineage
        return lineage

    def invalidate(self, dataset: DatasetIdentity | None = None) -> None:
        """Forget cached lineage for one dataset, or for all of them."""
        if dataset is None:
            self._cache.clear()
        else:
            self._cache.pop(dataset.repo_id, None)

    def is_cached(self, dataset: DatasetIdentity) -> bool:
        return dataset.repo_id in self._cache

    async def _fetch(self, dataset: DatasetIdentity) -> tuple[DatasetLineage, bool]:
        """Fetch and parse lineage; second element says whether to cache it."""
        repo_id = dataset.repo_id

        try:
            version = await self._source.get_dataset_version(repo_id)
        except IncompatibleDatasetError as e:
            logger.warning(
                "dataset_incompatible",
                repo_id=repo_id,
                version=e.version,
                error=e.message,
            )
            # An unsupported version will not change during a session
            cacheable = e.version is not None
            return DatasetLineage(dataset, e.version, LineageStatus.INCOMPATIBLE), cacheable

        try:
            text = await self._source.fetch_lineage_document(repo_id, version)
        except LineageUnavailableError as e:
            logger.info(
                "lineage_unavailable",
                repo_id=repo_id,
                version=version,
                status_code=e.status_code,
            )
            return DatasetLineage(dataset, version, LineageStatus.UNAVAILABLE), e.is_missing

        records = parse_lineage_document(text)
        derived = sum(1 for record in records.values() if record.has_lineage)
        logger.info(
            "lineage_loaded",
            repo_id=repo_id,
            version=version,
            episodes=len(records),
            derived_episodes=derived,
        )
        return DatasetLineage(dataset, version, LineageStatus.AVAILABLE, records), True
