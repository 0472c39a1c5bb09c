"""Tests for PostgresAnnotationStore with a mocked connection pool."""

import json
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from labelsync.annotations.enums import QualityTag
from labelsync.annotations.stores.postgres import PostgresAnnotationStore
from labelsync.config.models.storage import TableNames
from labelsync.db.errors import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    ValidationError,
)
from tests.factories import EpisodeRecordFactory, FrameRecordFactory


class FakePool:
    """Stands in for PostgresPool, handing out one mocked connection."""

    def __init__(self) -> None:
        self.conn = MagicMock()
        self.conn.fetchrow = AsyncMock(return_value=None)
        self.conn.fetch = AsyncMock(return_value=[])
        self.conn.execute = AsyncMock(return_value="DELETE 0")
        self.conn.executemany = AsyncMock()
        self.close = AsyncMock()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


@pytest.fixture
def pg_store(pool) -> PostgresAnnotationStore:
    return PostgresAnnotationStore(pool=pool)


class TestReads:
    """Tests for reads."""

    @pytest.mark.asyncio
    async def test_get_episode_binds_key(self, pg_store, pool, target) -> None:
        """Episode IDs are bound as text."""
        pool.conn.fetchrow.return_value = {
            "org_id": "lab",
            "dataset_id": "pick_litter",
            "episode_id": "3",
            "labeller_id": "alice",
            "quality_tag": "high",
            "key_notes": [],
            "items": '{"can": 1}',
            "arms_used": None,
            "remarks": "",
            "updated_at": None,
        }

        record = await pg_store.get_episode(target)

        sql, *args = pool.conn.fetchrow.call_args.args
        assert "FROM episode_labels" in sql
        assert args == ["lab", "pick_litter", "3"]
        assert record.quality_tag is QualityTag.HIGH
        assert record.items == {"can": 1}

    @pytest.mark.asyncio
    async def test_get_episode_missing(self, pg_store, target) -> None:
        """No row means no record."""
        assert await pg_store.get_episode(target) is None

    @pytest.mark.asyncio
    async def test_list_frames_ordered(self, pg_store, pool, target) -> None:
        """Frames are selected in index order."""
        pool.conn.fetch.return_value = [
            {"org_id": "lab", "dataset_id": "pick_litter", "episode_id": "3", "frame_idx": 1},
            {"org_id": "lab", "dataset_id": "pick_litter", "episode_id": "3", "frame_idx": 4},
        ]

        frames = await pg_store.list_frames(target)

        assert "ORDER BY frame_idx ASC" in pool.conn.fetch.call_args.args[0]
        assert [f.frame_index for f in frames] == [1, 4]

    @pytest.mark.asyncio
    async def test_invalid_row(self, pg_store, pool, target) -> None:
        """Rows that no longer parse raise ValidationError."""
        pool.conn.fetch.return_value = [
            {
                "org_id": "lab",
                "dataset_id": "pick_litter",
                "episode_id": "3",
                "frame_idx": 1,
                "phase_tags": ["teleport"],
            }
        ]
        with pytest.raises(ValidationError) as exc_info:
            await pg_store.list_frames(target)
        assert exc_info.value.key == "lab/pick_litter#3 frames 1"

    @pytest.mark.asyncio
    async def test_driver_error_wrapped(self, pg_store, pool, target) -> None:
        """Driver errors become ConnectionError with the cause attached."""
        error = asyncpg.PostgresError("boom")
        pool.conn.fetchrow.side_effect = error

        with pytest.raises(ConnectionError) as exc_info:
            await pg_store.get_episode(target)
        assert exc_info.value.cause is error
        assert exc_info.value.retryable
        assert (exc_info.value.table, exc_info.value.key) == ("episode_labels", "lab/pick_litter#3")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("driver_error", "error_type"),
        [
            (asyncpg.UndefinedTableError, NotFoundError),
            (asyncpg.UniqueViolationError, ConflictError),
            (asyncpg.CheckViolationError, ValidationError),
            (asyncpg.DataError, ValidationError),
            (asyncpg.InterfaceError, ConnectionError),
        ],
    )
    async def test_driver_error_mapping(
        self, pg_store, pool, target, driver_error, error_type
    ) -> None:
        """Driver error classes map onto the store error hierarchy."""
        pool.conn.execute.side_effect = driver_error("rejected")

        with pytest.raises(error_type) as exc_info:
            await pg_store.delete_frames(target, {4, 2})

        assert exc_info.value.table == "frame_labels"
        assert exc_info.value.key == "lab/pick_litter#3 frames 2,4"


class TestWrites:
    """Tests for writes."""

    @pytest.mark.asyncio
    async def test_upsert_episode_sql(self, pg_store, pool) -> None:
        """Episode writes upsert on the composite key with JSON items."""
        await pg_store.upsert_episode(EpisodeRecordFactory.create(items={"can": 2}))

        sql, *args = pool.conn.execute.call_args.args
        assert "INSERT INTO episode_labels" in sql
        assert "ON CONFLICT (org_id, dataset_id, episode_id) DO UPDATE SET" in sql
        assert "org_id = EXCLUDED.org_id" not in sql
        assert "$7::jsonb" in sql
        assert args[2] == "3"
        assert json.loads(args[6]) == {"can": 2}

    @pytest.mark.asyncio
    async def test_upsert_frames_in_transaction(self, pg_store, pool) -> None:
        """Frame batches run as one executemany."""
        written = await pg_store.upsert_frames(
            [FrameRecordFactory.create(1), FrameRecordFactory.create(2)]
        )

        assert written == 2
        pool.conn.transaction.assert_called_once()
        sql, rows = pool.conn.executemany.call_args.args
        assert "ON CONFLICT (org_id, dataset_id, episode_id, frame_idx)" in sql
        assert [row[3] for row in rows] == [1, 2]

    @pytest.mark.asyncio
    async def test_delete_frames_parses_command_tag(self, pg_store, pool, target) -> None:
        """The deleted count comes from the command tag."""
        pool.conn.execute.return_value = "DELETE 2"

        deleted = await pg_store.delete_frames(target, {9, 3})

        assert deleted == 2
        assert pool.conn.execute.call_args.args[-1] == [3, 9]

    @pytest.mark.asyncio
    async def test_empty_batches_skip_database(self, pg_store, pool, target) -> None:
        """Empty writes never acquire a connection."""
        assert await pg_store.upsert_frames([]) == 0
        assert await pg_store.delete_frames(target, []) == 0
        pool.conn.execute.assert_not_called()
        pool.conn.executemany.assert_not_called()

    @pytest.mark.asyncio
    async def test_clear_episode_frames_first(self, pg_store, pool, target) -> None:
        """Frames then episode, inside one transaction."""
        await pg_store.clear_episode(target)

        statements = [call.args[0] for call in pool.conn.execute.call_args_list]
        assert "frame_labels" in statements[0]
        assert "episode_labels" in statements[1]
        pool.conn.transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_custom_table_names(self, pool) -> None:
        """Configured table names are used in statements."""
        store = PostgresAnnotationStore(
            pool=pool, tables=TableNames(labellers="annotators")
        )
        await store.ensure_labeller("alice")
        assert "INSERT INTO annotators" in pool.conn.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_close_closes_pool(self, pg_store, pool) -> None:
        """Closing the store closes its pool."""
        await pg_store.close()
        pool.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pool_error_gains_record_context(self) -> None:
        """Connection failures raised by the pool name the table and key."""

        class UnreachablePool(FakePool):
            @asynccontextmanager
            async def acquire(self):
                raise ConnectionError("Failed to connect to PostgreSQL at db/labels")
                yield self.conn

        store = PostgresAnnotationStore(pool=UnreachablePool())

        with pytest.raises(ConnectionError) as exc_info:
            await store.upsert_episode(EpisodeRecordFactory.create())

        assert exc_info.value.table == "episode_labels"
        assert exc_info.value.key == str(EpisodeRecordFactory.create().target)
