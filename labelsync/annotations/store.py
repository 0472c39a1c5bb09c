"""AnnotationStore abstract interface."""

from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence

from labelsync.annotations.models import CanonicalTarget, EpisodeRecord, FrameRecord


class AnnotationStore(ABC):
    """Abstract interface for episode and frame annotation storage.

    Every write is keyed by explicit identity columns, so repeating a
    write with the same records leaves the store in the same state.
    Backends wrap driver errors in ``labelsync.db.errors.StoreError``.
    """

    @abstractmethod
    async def get_episode(self, target: CanonicalTarget) -> EpisodeRecord | None:
        """Get the episode record stored under target."""
        pass

    @abstractmethod
    async def list_frames(self, target: CanonicalTarget) -> list[FrameRecord]:
        """List the frame records of target, ordered by frame index."""
        pass

    @abstractmethod
    async def ensure_labeller(self, labeller_id: str) -> None:
        """Register a labeller if not already known."""
        pass

    @abstractmethod
    async def upsert_episode(self, record: EpisodeRecord) -> None:
        """Replace the episode record with the same key, or insert it."""
        pass

    @abstractmethod
    async def upsert_frames(self, records: Sequence[FrameRecord]) -> int:
        """Replace-or-insert frame records in one call. Returns rows written."""
        pass

    @abstractmethod
    async def delete_frames(
        self, target: CanonicalTarget, frame_indexes: Collection[int]
    ) -> int:
        """Delete the given frames of target in one call. Returns rows deleted."""
        pass

    @abstractmethod
    async def clear_episode(self, target: CanonicalTarget) -> None:
        """Delete the episode record and every frame record of target."""
        pass
