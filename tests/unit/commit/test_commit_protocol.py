"""Tests for BatchCommitProtocol."""

import asyncio

import pytest
import pytest_asyncio

from labelsync.annotations.enums import IssueTag, QualityTag
from labelsync.annotations.models import CanonicalTarget
from labelsync.annotations.rows import NO_ITEMS_MARKER, episode_to_row
from labelsync.commit import BatchCommitProtocol, CommitError, CommitStep
from labelsync.db.errors import ValidationError
from labelsync.editing import EditCache
from tests.factories import EpisodeRecordFactory, FlakyAnnotationStore, FrameRecordFactory


@pytest.fixture
def flaky_store() -> FlakyAnnotationStore:
    return FlakyAnnotationStore()


@pytest.fixture
def protocol(flaky_store) -> BatchCommitProtocol:
    return BatchCommitProtocol(flaky_store)


@pytest_asyncio.fixture
async def cache(flaky_store, target) -> EditCache:
    """Cache seeded from a store holding frames 1 and 2."""
    await flaky_store.upsert_frames(
        [
            FrameRecordFactory.create(1, issue_tags=[IssueTag.LEFT_ARM_MISSED]),
            FrameRecordFactory.create(2, notes="keep"),
        ]
    )
    cache = EditCache(target)
    cache.reset(await flaky_store.get_episode(target), await flaky_store.list_frames(target))
    return cache


async def stored_state(store, target) -> tuple:
    episode = await store.get_episode(target)
    frames = await store.list_frames(target)
    strip = {"updated_at"}
    return (
        episode.model_dump(exclude=strip) if episode else None,
        [frame.model_dump(exclude=strip) for frame in frames],
    )


class TestCommitSteps:
    """Tests for step order and content."""

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, protocol, flaky_store, cache, target) -> None:
        """Labeller, deletes, episode, frames."""
        cache.delete_frame(1)
        cache.set_episode_field({"quality_tag": "high"})
        cache.set_frame_field(3, {"notes": "new"})

        await protocol.commit(cache, target, "alice")

        assert flaky_store.calls == [
            "ensure_labeller",
            "delete_frames",
            "upsert_episode",
            "upsert_frames",
        ]

    @pytest.mark.asyncio
    async def test_empty_steps_are_skipped(self, protocol, flaky_store, target) -> None:
        """No deletions and no episode draft skip those steps."""
        cache = EditCache(target)
        cache.reset()
        cache.set_frame_field(4, {"notes": "only frames"})

        receipt = await protocol.commit(cache, target, "alice")

        assert flaky_store.calls == ["ensure_labeller", "upsert_frames"]
        skipped = {t.step for t in receipt.step_timings if t.skipped}
        assert skipped == {CommitStep.DELETE_FRAMES, CommitStep.UPSERT_EPISODE}

    @pytest.mark.asyncio
    async def test_records_are_stamped(self, protocol, flaky_store, cache, target) -> None:
        """Written records carry the labeller and a timestamp."""
        cache.set_frame_field(3, {"notes": "n"})

        await protocol.commit(cache, target, "alice")

        frames = await flaky_store.list_frames(target)
        assert {f.labeller_id for f in frames} == {"alice"}
        assert all(f.updated_at is not None for f in frames)
        assert "alice" in flaky_store.labellers

    @pytest.mark.asyncio
    async def test_success_resets_cache(self, protocol, cache, target) -> None:
        """The submitted drafts become the committed baseline."""
        cache.delete_frame(2)
        cache.set_frame_field(3, {"issue_tags": ["left_arm_recovery"]})

        receipt = await protocol.commit(cache, target, "alice")

        assert receipt.clean
        assert not cache.is_dirty
        assert [f.frame_index for f in cache.committed_frames] == [1, 3]
        assert receipt.frames_deleted == 1
        assert receipt.frames_written == 2

    @pytest.mark.asyncio
    async def test_undeleted_frame_is_upserted(self, protocol, flaky_store, cache, target) -> None:
        """delete then edit of the same frame writes it instead of deleting it."""
        cache.delete_frame(1)
        cache.set_frame_field(1, {"notes": "restored"})

        await protocol.commit(cache, target, "alice")

        assert "delete_frames" not in flaky_store.calls
        frames = {f.frame_index: f for f in await flaky_store.list_frames(target)}
        assert frames[1].notes == "restored"

    @pytest.mark.asyncio
    async def test_empty_items_persist_marker(self, protocol, flaky_store, cache, target) -> None:
        """An all-zero item map is written as the no-items marker."""
        cache.set_episode_field({"items": {"can": 0}})

        await protocol.commit(cache, target, "alice")

        episode = await flaky_store.get_episode(target)
        assert episode.items == {}
        assert episode_to_row(episode)["items"] == NO_ITEMS_MARKER

    @pytest.mark.asyncio
    async def test_target_mismatch_raises(self, protocol, cache) -> None:
        """A cache cannot be committed to another episode."""
        other = CanonicalTarget(org="lab", dataset="pick_litter", episode=9)
        with pytest.raises(ValueError):
            await protocol.commit(cache, other, "alice")


class TestCommitFailures:
    """Tests for failure semantics."""

    @pytest.mark.asyncio
    async def test_invalid_labeller_aborts_first(self, protocol, flaky_store, cache, target) -> None:
        """A labeller ID with spaces fails before any write."""
        cache.set_frame_field(3, {"notes": "n"})

        with pytest.raises(CommitError) as exc_info:
            await protocol.commit(cache, target, "alice smith")

        assert exc_info.value.step is CommitStep.REGISTER_LABELLER
        assert flaky_store.calls == []

    @pytest.mark.asyncio
    async def test_labeller_failure_touches_no_data(self, protocol, flaky_store, cache, target) -> None:
        """Registry failure aborts before annotation data."""
        cache.delete_frame(1)
        flaky_store.fail("ensure_labeller")

        with pytest.raises(CommitError) as exc_info:
            await protocol.commit(cache, target, "alice")

        assert exc_info.value.step is CommitStep.REGISTER_LABELLER
        assert flaky_store.calls == ["ensure_labeller"]
        assert len(await flaky_store.list_frames(target)) == 2

    @pytest.mark.asyncio
    async def test_failure_names_step_and_cause(self, protocol, flaky_store, cache, target) -> None:
        """The error identifies the failed step and wraps the store error."""
        cache.set_episode_field({"quality_tag": "low"})
        flaky_store.fail("upsert_episode")

        with pytest.raises(CommitError) as exc_info:
            await protocol.commit(cache, target, "alice")

        assert exc_info.value.step is CommitStep.UPSERT_EPISODE
        assert exc_info.value.cause is not None
        assert "upsert_episode" in str(exc_info.value)
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_rejected_write_is_not_retryable(
        self, protocol, flaky_store, cache, target
    ) -> None:
        """A validation failure from the store is reported as not retryable."""
        cache.set_frame_field(3, {"notes": "n"})
        flaky_store.fail("upsert_frames", error=ValidationError("bad tag", table="frame_labels"))

        with pytest.raises(CommitError) as exc_info:
            await protocol.commit(cache, target, "alice")

        assert exc_info.value.step is CommitStep.UPSERT_FRAMES
        assert not exc_info.value.retryable
        assert exc_info.value.cause.table == "frame_labels"

    @pytest.mark.asyncio
    async def test_failure_preserves_cache(self, protocol, flaky_store, cache, target) -> None:
        """Edits and pending deletions survive a failed commit."""
        cache.delete_frame(2)
        cache.set_frame_field(3, {"notes": "n"})
        flaky_store.fail("upsert_frames")

        with pytest.raises(CommitError):
            await protocol.commit(cache, target, "alice")

        assert cache.is_dirty
        assert cache.pending_deletions == frozenset({2})
        assert cache.frame(3).notes == "n"
        assert flaky_store.calls[-1] == "upsert_frames"

    @pytest.mark.asyncio
    async def test_retry_matches_single_commit(self, target) -> None:
        """Retrying after a transient failure reaches the same stored state."""

        async def run(fail_at: str | None) -> tuple:
            store = FlakyAnnotationStore()
            await store.upsert_frames([FrameRecordFactory.create(1), FrameRecordFactory.create(2)])
            cache = EditCache(target)
            cache.reset(None, await store.list_frames(target))
            cache.delete_frame(1)
            cache.set_episode_field({"quality_tag": QualityTag.MEDIUM, "items": {"can": 3}})
            cache.set_frame_field(4, {"issue_tags": ["frozen_cam"]})

            protocol = BatchCommitProtocol(store)
            if fail_at:
                store.fail(fail_at)
                with pytest.raises(CommitError):
                    await protocol.commit(cache, target, "alice")
            await protocol.commit(cache, target, "alice")
            return await stored_state(store, target)

        once = await run(None)
        assert await run("upsert_frames") == once
        assert await run("upsert_episode") == once
        assert await run("delete_frames") == once

    @pytest.mark.asyncio
    async def test_cancellation_is_not_wrapped(self, protocol, flaky_store, cache, target) -> None:
        """Cancelling a commit propagates CancelledError."""
        cache.set_frame_field(3, {"notes": "n"})
        flaky_store.hold("upsert_frames")

        task = asyncio.create_task(protocol.commit(cache, target, "alice"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert cache.is_dirty


class TestConcurrentEdits:
    """Tests for edits made while a commit is in flight."""

    @pytest.mark.asyncio
    async def test_late_response_keeps_new_edits(self, protocol, flaky_store, cache, target) -> None:
        """A commit finishing after more edits leaves them dirty."""
        cache.set_frame_field(3, {"notes": "before save"})
        gate = flaky_store.hold("upsert_frames")

        task = asyncio.create_task(protocol.commit(cache, target, "alice"))
        while "upsert_frames" not in flaky_store.calls:
            await asyncio.sleep(0)

        cache.set_frame_field(4, {"notes": "during save"})
        gate.set()
        receipt = await task

        assert receipt.clean is False
        assert cache.is_dirty
        assert cache.frame(4).notes == "during save"
        stored = {f.frame_index for f in await flaky_store.list_frames(target)}
        assert 4 not in stored
        assert 3 in stored

    @pytest.mark.asyncio
    async def test_snapshot_bounds_the_commit(self, protocol, flaky_store, cache, target) -> None:
        """Only records in the given snapshot are written."""
        cache.set_frame_field(3, {"notes": "in snapshot"})
        snapshot = cache.snapshot()
        cache.set_frame_field(3, {"notes": "after snapshot"})

        await protocol.commit(cache, target, "alice", snapshot=snapshot)

        frames = {f.frame_index: f for f in await flaky_store.list_frames(target)}
        assert frames[3].notes == "in snapshot"
        assert cache.frame(3).notes == "after snapshot"
        assert cache.is_dirty


class TestEpisodeRecords:
    """Tests for episode drafts seeded from the store."""

    @pytest.mark.asyncio
    async def test_committed_episode_is_replaced(self, protocol, flaky_store, target) -> None:
        """Upsert replaces the stored episode on identity match."""
        await flaky_store.upsert_episode(EpisodeRecordFactory.create(remarks="old"))
        cache = EditCache(target)
        cache.reset(await flaky_store.get_episode(target), [])
        cache.set_episode_field({"remarks": "new"})

        await protocol.commit(cache, target, "alice")

        assert (await flaky_store.get_episode(target)).remarks == "new"
