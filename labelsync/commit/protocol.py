"""Batch commit protocol.

Writes the contents of an edit cache to an annotation store in a fixed
order:

1. Register the labeller (insert if absent)
2. Bulk delete the frames pending deletion
3. Upsert the episode draft
4. Bulk upsert the frame drafts

Every step is keyed by explicit identity columns, so retrying a failed
commit as a whole is safe. A failure aborts the remaining steps and leaves
the cache untouched; success adopts the submitted records as the cache's
new committed baseline.
"""

import time
from collections.abc import Awaitable, Callable
from types import MappingProxyType
from typing import TypeVar

from labelsync.annotations.models import CanonicalTarget, utc_now, validate_labeller_id
from labelsync.annotations.store import AnnotationStore
from labelsync.commit.errors import CommitError
from labelsync.commit.models import CommitReceipt, CommitStep, CommitStepTiming
from labelsync.db.errors import StoreError
from labelsync.editing.cache import CacheSnapshot, EditCache
from labelsync.observability.logging import get_logger
from labelsync.observability.metrics import (
    COMMIT_COUNT,
    COMMIT_FAILURES,
    COMMIT_LATENCY,
    FRAMES_DELETED,
    FRAMES_UPSERTED,
)

logger = get_logger(__name__)

T = TypeVar("T")


class BatchCommitProtocol:
    """Commit an edit cache to an annotation store.

    Commits never retry on their own; a failure surfaces as one
    CommitError naming the failed step.
    """

    def __init__(self, store: AnnotationStore) -> None:
        """Initialize the protocol.

        Args:
            store: Annotation store to write to
        """
        self._store = store

    @property
    def store(self) -> AnnotationStore:
        return self._store

    async def commit(
        self,
        cache: EditCache,
        target: CanonicalTarget,
        labeller_id: str,
        snapshot: CacheSnapshot | None = None,
    ) -> CommitReceipt:
        """Commit the cache's drafts and deletions.

        Args:
            cache: Edit cache of the open episode
            target: Canonical target the cache belongs to
            labeller_id: Labeller stamped on every written record
            snapshot: Drafts to submit; taken from the cache now if omitted.
                Edits made to the cache after the snapshot stay dirty.

        Returns:
            CommitReceipt describing what was written

        Raises:
            CommitError: a step failed; the cache is left as it was
            ValueError: target or snapshot do not match the cache
        """
        if target != cache.target:
            raise ValueError(f"Cache of {cache.target} cannot be committed to {target}")
        if snapshot is None:
            snapshot = cache.snapshot()
        elif snapshot.target != target:
            raise ValueError(f"Snapshot of {snapshot.target} cannot be committed to {target}")

        start_time = time.perf_counter()
        timings: list[CommitStepTiming] = []

        try:
            labeller_id = validate_labeller_id(labeller_id)
        except ValueError as e:
            self._record_failure(CommitStep.REGISTER_LABELLER, target, e)
            raise CommitError(CommitStep.REGISTER_LABELLER, e) from e

        committed_at = utc_now()
        submitted = self._stamp(snapshot, labeller_id)
        deletions = sorted(submitted.deletions)
        frames = [submitted.frames[index] for index in sorted(submitted.frames)]

        logger.info(
            "commit_started",
            target=str(target),
            labeller_id=labeller_id,
            deletions=len(deletions),
            frames=len(frames),
            has_episode=submitted.episode is not None,
        )

        await self._run_step(
            CommitStep.REGISTER_LABELLER,
            target,
            timings,
            lambda: self._store.ensure_labeller(labeller_id),
        )

        deleted = await self._run_step(
            CommitStep.DELETE_FRAMES,
            target,
            timings,
            (lambda: self._store.delete_frames(target, deletions)) if deletions else None,
            skip_reason="No frames pending deletion",
        )

        episode = submitted.episode
        await self._run_step(
            CommitStep.UPSERT_EPISODE,
            target,
            timings,
            (lambda: self._store.upsert_episode(episode)) if episode is not None else None,
            skip_reason="No episode draft",
        )

        written = await self._run_step(
            CommitStep.UPSERT_FRAMES,
            target,
            timings,
            (lambda: self._store.upsert_frames(frames)) if frames else None,
            skip_reason="No frame drafts",
        )

        clean = cache.acknowledge(snapshot, submitted)
        total_time_ms = (time.perf_counter() - start_time) * 1000

        COMMIT_COUNT.labels(status="success").inc()
        COMMIT_LATENCY.observe(total_time_ms / 1000)
        FRAMES_DELETED.inc(deleted or 0)
        FRAMES_UPSERTED.inc(written or 0)

        logger.info(
            "commit_completed",
            target=str(target),
            labeller_id=labeller_id,
            frames_written=written or 0,
            frames_deleted=deleted or 0,
            clean=clean,
            total_time_ms=round(total_time_ms, 2),
        )

        return CommitReceipt(
            target=target,
            labeller_id=labeller_id,
            committed_at=committed_at,
            episode_written=episode is not None,
            frames_written=written or 0,
            frames_deleted=deleted or 0,
            clean=clean,
            step_timings=timings,
            total_time_ms=total_time_ms,
        )

    def _stamp(self, snapshot: CacheSnapshot, labeller_id: str) -> CacheSnapshot:
        """Copy of the snapshot with every record stamped for writing."""
        stamp = {"labeller_id": labeller_id, "updated_at": utc_now()}
        episode = snapshot.episode.model_copy(update=stamp) if snapshot.episode else None
        frames = {index: frame.model_copy(update=stamp) for index, frame in snapshot.frames.items()}
        return CacheSnapshot(
            target=snapshot.target,
            revision=snapshot.revision,
            episode=episode,
            frames=MappingProxyType(frames),
            deletions=snapshot.deletions,
        )

    async def _run_step(
        self,
        step: CommitStep,
        target: CanonicalTarget,
        timings: list[CommitStepTiming],
        action: Callable[[], Awaitable[T]] | None,
        skip_reason: str | None = None,
    ) -> T | None:
        """Run one step, recording its timing; a missing action skips it."""
        step_start = utc_now()
        start_time = time.perf_counter()

        if action is None:
            timings.append(
                CommitStepTiming(
                    step=step,
                    started_at=step_start,
                    ended_at=utc_now(),
                    duration_ms=0,
                    skipped=True,
                    skip_reason=skip_reason,
                )
            )
            return None

        try:
            result = await action()
        except Exception as e:
            self._record_failure(step, target, e)
            raise CommitError(step, e) from e

        timings.append(
            CommitStepTiming(
                step=step,
                started_at=step_start,
                ended_at=utc_now(),
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )
        )
        return result

    def _record_failure(self, step: CommitStep, target: CanonicalTarget, error: Exception) -> None:
        COMMIT_COUNT.labels(status="failed").inc()
        COMMIT_FAILURES.labels(step=step.value).inc()
        if isinstance(error, StoreError):
            fields = error.log_fields()
        else:
            fields = {"error": str(error), "error_type": type(error).__name__}
        logger.warning("commit_step_failed", target=str(target), step=step.value, **fields)
