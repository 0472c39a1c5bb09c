"""Edit cache with dirty tracking for one open episode.

Holds the episode draft, the frame drafts keyed by frame index and the set
of frame indexes deleted since the last successful commit. It is the only
source of what is on screen; committed storage content seeds it on load.

Every mutation bumps a revision counter. A commit takes a snapshot at
invocation time and acknowledges that snapshot when it succeeds, so edits
made while the commit was in flight are never overwritten and keep the
cache dirty.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from labelsync.annotations.models import CanonicalTarget, EpisodeRecord, FrameRecord
from labelsync.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheSnapshot:
    """Drafts and deletions of a cache at one revision."""

    target: CanonicalTarget
    revision: int
    episode: EpisodeRecord | None
    frames: Mapping[int, FrameRecord] = field(default_factory=dict)
    deletions: frozenset[int] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return self.episode is None and not self.frames and not self.deletions


class EditCache:
    """In-memory drafts for one canonical episode.

    The pending-deletion set and the frame drafts never share a key.
    """

    def __init__(self, target: CanonicalTarget) -> None:
        self._target = target
        self._episode: EpisodeRecord | None = None
        self._frames: dict[int, FrameRecord] = {}
        self._deletions: dict[int, int] = {}  # frame index -> revision deleted at
        self._edited_at: dict[int, int] = {}  # frame index -> revision of last edit
        self._episode_edited_at: int | None = None
        self._committed_episode: EpisodeRecord | None = None
        self._committed_frames: dict[int, FrameRecord] = {}
        self._revision = 0
        self._dirty = False

    @property
    def target(self) -> CanonicalTarget:
        return self._target

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def is_dirty(self) -> bool:
        """True iff anything changed since the last reset."""
        return self._dirty

    @property
    def episode(self) -> EpisodeRecord | None:
        return self._episode

    @property
    def frames(self) -> Mapping[int, FrameRecord]:
        """Read-only view of the frame drafts."""
        return MappingProxyType(self._frames)

    def frame(self, frame_index: int) -> FrameRecord | None:
        return self._frames.get(frame_index)

    @property
    def pending_deletions(self) -> frozenset[int]:
        return frozenset(self._deletions)

    @property
    def committed_episode(self) -> EpisodeRecord | None:
        return self._committed_episode

    @property
    def committed_frames(self) -> list[FrameRecord]:
        """Last committed frame records, ascending by frame index."""
        return [self._committed_frames[i] for i in sorted(self._committed_frames)]

    def set_episode_field(self, patch: Mapping[str, Any]) -> EpisodeRecord:
        """Merge a partial update into the episode draft.

        Creates the draft from defaults when there is none yet.

        Raises:
            ValueError: the patch touches key fields or fails validation
        """
        base = self._episode or EpisodeRecord.defaults(self._target)
        self._episode = base.merged(patch)
        self._touch()
        self._episode_edited_at = self._revision
        return self._episode

    def set_frame_field(self, frame_index: int, patch: Mapping[str, Any]) -> FrameRecord:
        """Merge a partial update into the draft at frame_index.

        An edit un-deletes: the index leaves the pending-deletion set.

        Raises:
            ValueError: bad index, key fields in the patch, or invalid values
        """
        base = self._frames.get(frame_index) or FrameRecord.defaults(self._target, frame_index)
        self._frames[frame_index] = base.merged(patch)
        self._deletions.pop(frame_index, None)
        self._touch()
        self._edited_at[frame_index] = self._revision
        return self._frames[frame_index]

    def delete_frame(self, frame_index: int) -> None:
        """Remove the draft at frame_index and schedule a remote delete.

        A frame that was never committed and has no draft has nothing to
        delete remotely, so only the local removal happens.
        """
        had_draft = self._frames.pop(frame_index, None) is not None
        self._edited_at.pop(frame_index, None)
        self._touch()
        if had_draft or frame_index in self._committed_frames:
            self._deletions[frame_index] = self._revision

    def reset(
        self,
        episode: EpisodeRecord | None = None,
        frames: Iterable[FrameRecord] = (),
    ) -> None:
        """Replace all drafts with a committed baseline and clear dirty.

        Raises:
            ValueError: a record belongs to another canonical episode
        """
        frame_map = {frame.frame_index: frame for frame in frames}
        for record in [episode, *frame_map.values()]:
            if record is not None and record.target != self._target:
                raise ValueError(
                    f"Record for {record.target} cannot seed the cache of {self._target}"
                )

        self._committed_episode = episode
        self._committed_frames = dict(frame_map)
        self._episode = episode
        self._frames = dict(frame_map)
        self._deletions.clear()
        self._edited_at.clear()
        self._episode_edited_at = None
        self._dirty = False
        self._revision += 1

    def snapshot(self) -> CacheSnapshot:
        """Capture the drafts a commit is about to submit."""
        return CacheSnapshot(
            target=self._target,
            revision=self._revision,
            episode=self._episode,
            frames=MappingProxyType(dict(self._frames)),
            deletions=frozenset(self._deletions),
        )

    def acknowledge(self, snapshot: CacheSnapshot, submitted: CacheSnapshot | None = None) -> bool:
        """Adopt a successfully committed snapshot as the new baseline.

        Args:
            snapshot: Snapshot taken when the commit was invoked
            submitted: Records as actually written (stamped with labeller and
                time); defaults to the snapshot itself

        Returns:
            True if the cache is clean afterwards, False if it was edited
            after the snapshot and stays dirty

        Raises:
            ValueError: the snapshot belongs to another canonical episode
        """
        if snapshot.target != self._target:
            raise ValueError(f"Snapshot of {snapshot.target} does not belong to {self._target}")
        written = submitted or snapshot

        committed_frames = {
            index: frame
            for index, frame in self._committed_frames.items()
            if index not in written.deletions
        }
        committed_frames.update(written.frames)
        committed_episode = written.episode or self._committed_episode

        if self._revision == snapshot.revision:
            self.reset(committed_episode, committed_frames.values())
            return True

        # Edited since the snapshot: move the baseline, keep current drafts
        self._committed_episode = committed_episode
        self._committed_frames = committed_frames
        for index in snapshot.deletions:
            if self._deletions.get(index, self._revision + 1) <= snapshot.revision:
                del self._deletions[index]

        logger.debug(
            "edit_cache_partially_acknowledged",
            target=str(self._target),
            snapshot_revision=snapshot.revision,
            revision=self._revision,
        )
        return not self._dirty

    def acknowledge_clear(self, revision: int) -> bool:
        """Adopt an empty baseline after every stored label was deleted.

        Drafts edited after ``revision`` (the revision when the clear was
        issued) are kept and stay dirty; everything older is dropped.

        Returns:
            True if the cache is clean afterwards
        """
        if self._revision == revision:
            self.reset()
            return True

        self._committed_episode = None
        self._committed_frames = {}
        self._deletions.clear()
        if (self._episode_edited_at or 0) <= revision:
            self._episode = None
            self._episode_edited_at = None
        self._frames = {
            index: frame
            for index, frame in self._frames.items()
            if self._edited_at.get(index, 0) > revision
        }
        self._edited_at = {index: self._edited_at[index] for index in self._frames}
        self._dirty = self._episode is not None or bool(self._frames)
        self._revision += 1

        logger.debug(
            "edit_cache_clear_acknowledged",
            target=str(self._target),
            clear_revision=revision,
            kept_frames=len(self._frames),
        )
        return not self._dirty

    def _touch(self) -> None:
        self._revision += 1
        self._dirty = True
