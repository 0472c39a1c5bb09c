"""Annotation session controller.

Orchestrates one open episode:

    IDLE -> LOADING -> CLEAN <-> DIRTY -> SAVING -> CLEAN | DIRTY

Opening resolves the canonical target, loads its committed records and
seeds a fresh edit cache. Edits move CLEAN to DIRTY. Saving checks the
pairing of the frames about to be committed, asks for confirmation when
they are unbalanced and runs the batch commit. A failed commit returns to
DIRTY with every edit kept.

Each open starts a new load generation. Results belonging to an older
generation (a slow resolution, a slow read or a late commit response)
never touch the current cache or state.
"""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from labelsync.annotations.models import (
    CanonicalTarget,
    DatasetIdentity,
    EpisodeRecord,
    FrameRecord,
    validate_labeller_id,
)
from labelsync.annotations.store import AnnotationStore
from labelsync.commit.errors import CommitError
from labelsync.commit.models import CommitReceipt
from labelsync.commit.protocol import BatchCommitProtocol
from labelsync.editing.cache import EditCache
from labelsync.lineage.resolver import LineageResolver
from labelsync.observability.logging import get_logger
from labelsync.pairing.checker import check_pairing
from labelsync.pairing.models import DEFAULT_PAIRING_TABLE, PairingRule
from labelsync.session.models import (
    CLEAR_ALL_MESSAGE,
    UNSAVED_CHANGES_MESSAGE,
    ConfirmCallback,
    PlaybackClock,
    SessionState,
    always_confirm,
    frame_index_at,
    pairing_confirmation_message,
)

logger = get_logger(__name__)


class SessionNotOpenError(RuntimeError):
    """Raised when an edit or save is attempted with no episode loaded."""


class AnnotationSessionController:
    """Drive loading, editing and saving of one episode at a time.

    The edit cache's dirty flag is the only signal used to enable saving,
    to guard navigation and to decide whether a reload may happen silently.
    """

    def __init__(
        self,
        resolver: LineageResolver,
        committer: BatchCommitProtocol,
        labeller_id: str | None = None,
        confirm: ConfirmCallback | None = None,
        clock: PlaybackClock | None = None,
        fps: float = 30,
        pairing_table: Sequence[PairingRule] = DEFAULT_PAIRING_TABLE,
    ) -> None:
        """Initialize the controller.

        Args:
            resolver: Lineage resolver for canonical targets
            committer: Batch commit protocol (its store is also used for reads)
            labeller_id: Logged-in labeller, may be set later
            confirm: Async yes/no prompt; every prompt is accepted if omitted
            clock: Playback clock for edits without an explicit frame index
            fps: Frame rate used to turn playback time into a frame index
            pairing_table: Issue/recovery pairs checked before saving
        """
        self._resolver = resolver
        self._committer = committer
        self._confirm = confirm or always_confirm
        self._clock = clock
        self._fps = fps
        self._pairing_table = tuple(pairing_table)
        self._labeller_id = validate_labeller_id(labeller_id) if labeller_id else None

        self._state = SessionState.IDLE
        self._generation = 0
        self._dataset: DatasetIdentity | None = None
        self._episode_index: int | None = None
        self._target: CanonicalTarget | None = None
        self._cache: EditCache | None = None

    @property
    def store(self) -> AnnotationStore:
        return self._committer.store

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def dataset(self) -> DatasetIdentity | None:
        return self._dataset

    @property
    def episode_index(self) -> int | None:
        return self._episode_index

    @property
    def target(self) -> CanonicalTarget | None:
        return self._target

    @property
    def cache(self) -> EditCache | None:
        return self._cache

    @property
    def labeller_id(self) -> str | None:
        return self._labeller_id

    @labeller_id.setter
    def labeller_id(self, value: str) -> None:
        self._labeller_id = validate_labeller_id(value)

    @property
    def is_dirty(self) -> bool:
        return self._cache is not None and self._cache.is_dirty

    @property
    def needs_unsaved_changes_prompt(self) -> bool:
        """True while edits are unsaved, including during an unresolved save."""
        return self.is_dirty

    @property
    def can_save(self) -> bool:
        return (
            self._state is SessionState.DIRTY
            and self.is_dirty
            and self._labeller_id is not None
        )

    @property
    def pairing_warnings(self) -> list[str]:
        """Pairing warnings over the last committed frames only."""
        if self._cache is None:
            return []
        return check_pairing(self._cache.committed_frames, self._pairing_table)

    def current_frame_index(self) -> int:
        """Frame index under the playback clock."""
        if self._clock is None:
            raise RuntimeError("No playback clock configured; pass frame_index explicitly")
        return frame_index_at(self._clock.current_time, self._fps)

    async def confirm_discard(self) -> bool:
        """Ask before leaving the episode; True when nothing would be lost."""
        if not self.needs_unsaved_changes_prompt:
            return True
        return await self._confirm(UNSAVED_CHANGES_MESSAGE)

    async def open(self, dataset: DatasetIdentity, episode_index: int, force: bool = False) -> bool:
        """Open an episode, discarding the current one.

        Args:
            dataset: Viewed dataset
            episode_index: Viewed episode
            force: Skip the unsaved-changes prompt

        Returns:
            True once the episode is loaded; False if the user kept the
            current episode or a newer open superseded this one

        Raises:
            StoreError: committed records could not be read
        """
        if not force and not await self.confirm_discard():
            logger.info(
                "episode_switch_cancelled",
                repo_id=dataset.repo_id,
                episode=episode_index,
            )
            return False

        if self._dataset is not None and self._dataset != dataset:
            self._resolver.invalidate(self._dataset)

        self._generation += 1
        generation = self._generation
        self._state = SessionState.LOADING
        self._dataset = dataset
        self._episode_index = episode_index
        self._target = None
        self._cache = None

        try:
            target = await self._resolver.resolve(dataset, episode_index)
            if generation != self._generation:
                return False
            episode, frames = await asyncio.gather(
                self.store.get_episode(target),
                self.store.list_frames(target),
            )
        except Exception as e:
            if generation == self._generation:
                self._state = SessionState.IDLE
                logger.error(
                    "episode_load_failed",
                    repo_id=dataset.repo_id,
                    episode=episode_index,
                    error=str(e),
                )
            raise

        if generation != self._generation:
            logger.debug("stale_load_discarded", repo_id=dataset.repo_id, episode=episode_index)
            return False

        cache = EditCache(target)
        cache.reset(episode, frames)
        self._target = target
        self._cache = cache
        self._state = SessionState.CLEAN

        logger.info(
            "episode_opened",
            repo_id=dataset.repo_id,
            episode=episode_index,
            target=str(target),
            has_episode_record=episode is not None,
            frames=len(frames),
        )
        return True

    def edit_episode(self, patch: Mapping[str, Any]) -> EpisodeRecord:
        """Apply a partial update to the episode draft."""
        record = self._require_cache().set_episode_field(patch)
        self._mark_edited()
        return record

    def edit_frame(self, patch: Mapping[str, Any], frame_index: int | None = None) -> FrameRecord:
        """Apply a partial update to a frame draft.

        Uses the frame under the playback clock when frame_index is omitted.
        """
        cache = self._require_cache()
        index = self.current_frame_index() if frame_index is None else frame_index
        record = cache.set_frame_field(index, patch)
        self._mark_edited()
        return record

    def delete_frame(self, frame_index: int | None = None) -> None:
        cache = self._require_cache()
        index = self.current_frame_index() if frame_index is None else frame_index
        cache.delete_frame(index)
        self._mark_edited()

    async def save(self) -> CommitReceipt | None:
        """Commit the open episode's edits.

        Returns:
            The commit receipt, or None when there was nothing to save, a
            save was already running, or the user cancelled

        Raises:
            CommitError: a commit step failed; edits are kept
            ValueError: no labeller is logged in
        """
        cache = self._require_cache()
        if self._state is SessionState.SAVING:
            logger.debug("save_already_in_progress", target=str(cache.target))
            return None
        if not cache.is_dirty:
            return None
        if self._labeller_id is None:
            raise ValueError("Labeller ID is required to save")

        generation = self._generation
        warnings = check_pairing(cache.frames.values(), self._pairing_table)
        if warnings:
            logger.info("pairing_warnings_before_save", target=str(cache.target), warnings=warnings)
            if not await self._confirm(pairing_confirmation_message(warnings)):
                logger.info("save_cancelled", target=str(cache.target))
                return None
            if generation != self._generation or self._state is SessionState.SAVING:
                return None

        snapshot = cache.snapshot()
        self._state = SessionState.SAVING
        try:
            receipt = await self._committer.commit(
                cache, cache.target, self._labeller_id, snapshot=snapshot
            )
        except CommitError:
            if generation == self._generation:
                self._state = SessionState.DIRTY
            raise

        if generation != self._generation:
            logger.info("late_commit_response", target=str(receipt.target))
            return receipt

        self._state = SessionState.DIRTY if cache.is_dirty else SessionState.CLEAN
        return receipt

    async def clear_all(self) -> bool:
        """Delete every stored label of the open episode after confirmation.

        Raises:
            StoreError: the delete failed; the cache is kept
        """
        cache = self._require_cache()
        if self._state is SessionState.SAVING:
            return False
        if not await self._confirm(CLEAR_ALL_MESSAGE):
            return False

        generation = self._generation
        revision = cache.revision
        self._state = SessionState.SAVING
        try:
            await self.store.clear_episode(cache.target)
        except Exception:
            if generation == self._generation:
                self._state = SessionState.DIRTY if cache.is_dirty else SessionState.CLEAN
            raise

        logger.info("episode_labels_cleared", target=str(cache.target))
        if generation == self._generation:
            clean = cache.acknowledge_clear(revision)
            self._state = SessionState.CLEAN if clean else SessionState.DIRTY
        return True

    def _require_cache(self) -> EditCache:
        if self._cache is None:
            raise SessionNotOpenError("No episode is open")
        return self._cache

    def _mark_edited(self) -> None:
        if self._state is SessionState.CLEAN:
            self._state = SessionState.DIRTY
