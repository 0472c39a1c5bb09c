"""In-memory implementation of AnnotationStore."""

from collections.abc import Collection, Sequence
from datetime import UTC, datetime

from labelsync.annotations.models import CanonicalTarget, EpisodeRecord, FrameRecord
from labelsync.annotations.store import AnnotationStore

EpisodeKey = tuple[str, str, int]
FrameKey = tuple[str, str, int, int]


def _episode_key(target: CanonicalTarget) -> EpisodeKey:
    return (target.org, target.dataset, target.episode)


class InMemoryAnnotationStore(AnnotationStore):
    """In-memory implementation of AnnotationStore for testing and development."""

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._episodes: dict[EpisodeKey, EpisodeRecord] = {}
        self._frames: dict[FrameKey, FrameRecord] = {}
        self._labellers: dict[str, datetime] = {}

    async def get_episode(self, target: CanonicalTarget) -> EpisodeRecord | None:
        """Get the episode record stored under target."""
        return self._episodes.get(_episode_key(target))

    async def list_frames(self, target: CanonicalTarget) -> list[FrameRecord]:
        """List the frame records of target, ordered by frame index."""
        key = _episode_key(target)
        frames = [
            record
            for (org, dataset, episode, _), record in self._frames.items()
            if (org, dataset, episode) == key
        ]
        return sorted(frames, key=lambda record: record.frame_index)

    async def ensure_labeller(self, labeller_id: str) -> None:
        """Register a labeller if not already known."""
        self._labellers.setdefault(labeller_id, datetime.now(UTC))

    async def upsert_episode(self, record: EpisodeRecord) -> None:
        """Replace the episode record with the same key, or insert it."""
        self._episodes[_episode_key(record.target)] = record

    async def upsert_frames(self, records: Sequence[FrameRecord]) -> int:
        """Replace-or-insert frame records in one call."""
        for record in records:
            key = (record.org_id, record.dataset_id, record.episode_id, record.frame_index)
            self._frames[key] = record
        return len(records)

    async def delete_frames(
        self, target: CanonicalTarget, frame_indexes: Collection[int]
    ) -> int:
        """Delete the given frames of target in one call."""
        deleted = 0
        for frame_index in frame_indexes:
            key = (*_episode_key(target), frame_index)
            if self._frames.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def clear_episode(self, target: CanonicalTarget) -> None:
        """Delete the episode record and every frame record of target."""
        key = _episode_key(target)
        self._episodes.pop(key, None)
        for frame_key in [k for k in self._frames if k[:3] == key]:
            del self._frames[frame_key]

    @property
    def labellers(self) -> set[str]:
        """Registered labeller IDs."""
        return set(self._labellers)
