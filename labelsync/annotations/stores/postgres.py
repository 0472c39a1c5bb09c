"""PostgreSQL implementation of AnnotationStore.

Provides persistent storage for episode and frame annotations using
composite-key upserts (``INSERT .. ON CONFLICT .. DO UPDATE``).
"""

import json
from collections.abc import AsyncIterator, Collection, Sequence
from contextlib import asynccontextmanager
from typing import Any

import asyncpg
from pydantic import ValidationError as PydanticValidationError

from labelsync.annotations.models import CanonicalTarget, EpisodeRecord, FrameRecord
from labelsync.annotations.rows import (
    EPISODE_COLUMNS,
    EPISODE_CONFLICT_KEY,
    FRAME_COLUMNS,
    FRAME_CONFLICT_KEY,
    episode_to_row,
    frame_to_row,
    row_to_episode,
    row_to_frame,
)
from labelsync.annotations.store import AnnotationStore
from labelsync.config.models.storage import TableNames
from labelsync.db.errors import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    StoreError,
    ValidationError,
    record_key,
)
from labelsync.db.pool import PostgresPool
from labelsync.observability.logging import get_logger

logger = get_logger(__name__)


def _upsert_sql(table: str, columns: Sequence[str], conflict_key: Sequence[str]) -> str:
    """Build a replace-on-key-match insert statement."""
    placeholders = []
    for position, column in enumerate(columns, start=1):
        cast = "::jsonb" if column == "items" else ""
        placeholders.append(f"${position}{cast}")
    updates = ", ".join(
        f"{column} = EXCLUDED.{column}" for column in columns if column not in conflict_key
    )
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)}) "
        f"ON CONFLICT ({', '.join(conflict_key)}) DO UPDATE SET {updates}"
    )


def _translate(e: Exception, message: str, table: str, key: str | None) -> StoreError:
    """Map a driver exception onto the StoreError hierarchy."""
    if isinstance(e, asyncpg.UndefinedTableError):
        error_type: type[StoreError] = NotFoundError
    elif isinstance(e, asyncpg.UniqueViolationError):
        error_type = ConflictError
    elif isinstance(e, (asyncpg.IntegrityConstraintViolationError, asyncpg.DataError)):
        error_type = ValidationError
    else:
        error_type = ConnectionError
    return error_type(f"{message}: {e}", cause=e, table=table, key=key)


class PostgresAnnotationStore(AnnotationStore):
    """PostgreSQL implementation of AnnotationStore."""

    def __init__(self, pool: PostgresPool, tables: TableNames | None = None) -> None:
        """Initialize PostgreSQL annotation store.

        Args:
            pool: Connection pool wrapper
            tables: Table names (defaults to episode_labels / frame_labels / labellers)
        """
        self._pool = pool
        self._tables = tables or TableNames()
        self._episode_upsert = _upsert_sql(
            self._tables.episodes, EPISODE_COLUMNS, EPISODE_CONFLICT_KEY
        )
        self._frame_upsert = _upsert_sql(self._tables.frames, FRAME_COLUMNS, FRAME_CONFLICT_KEY)

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._pool.close()

    @asynccontextmanager
    async def _connection(
        self, operation: str, table: str, key: str | None = None
    ) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection; failures surface as StoreError naming table and key."""
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except StoreError as e:
            # Raised by the pool while connecting; it does not know the record
            e.table = e.table or table
            e.key = e.key or key
            logger.error(f"postgres_{operation}_error", **e.log_fields())
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError) as e:
            error = _translate(e, f"Failed to {operation.replace('_', ' ')}", table, key)
            logger.error(f"postgres_{operation}_error", **error.log_fields())
            raise error from e

    @staticmethod
    def _episode_args(record: EpisodeRecord) -> list[Any]:
        row = episode_to_row(record)
        row["items"] = json.dumps(row["items"])
        return [row[column] for column in EPISODE_COLUMNS]

    @staticmethod
    def _frame_args(record: FrameRecord) -> list[Any]:
        row = frame_to_row(record)
        return [row[column] for column in FRAME_COLUMNS]

    async def get_episode(self, target: CanonicalTarget) -> EpisodeRecord | None:
        """Get the episode record stored under target."""
        table, key = self._tables.episodes, record_key(target)
        async with self._connection("get_episode", table, key) as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {', '.join(EPISODE_COLUMNS)} FROM {table}
                WHERE org_id = $1 AND dataset_id = $2 AND episode_id = $3
                """,
                target.org,
                target.dataset,
                str(target.episode),
            )

        if row is None:
            return None
        try:
            return row_to_episode(dict(row))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Stored episode label is invalid: {e}", cause=e, table=table, key=key
            ) from e

    async def list_frames(self, target: CanonicalTarget) -> list[FrameRecord]:
        """List the frame records of target, ordered by frame index."""
        table = self._tables.frames
        async with self._connection("list_frames", table, record_key(target)) as conn:
            rows = await conn.fetch(
                f"""
                SELECT {', '.join(FRAME_COLUMNS)} FROM {table}
                WHERE org_id = $1 AND dataset_id = $2 AND episode_id = $3
                ORDER BY frame_idx ASC
                """,
                target.org,
                target.dataset,
                str(target.episode),
            )

        frames = []
        for row in rows:
            try:
                frames.append(row_to_frame(dict(row)))
            except PydanticValidationError as e:
                key = record_key(target, [row["frame_idx"]])
                raise ValidationError(
                    f"Stored frame label is invalid: {e}", cause=e, table=table, key=key
                ) from e
        return frames

    async def ensure_labeller(self, labeller_id: str) -> None:
        """Register a labeller if not already known."""
        table = self._tables.labellers
        async with self._connection("register_labeller", table, labeller_id) as conn:
            await conn.execute(
                f"""
                INSERT INTO {table} (labeller_id)
                VALUES ($1)
                ON CONFLICT (labeller_id) DO NOTHING
                """,
                labeller_id,
            )

    async def upsert_episode(self, record: EpisodeRecord) -> None:
        """Replace the episode record with the same key, or insert it."""
        key = record_key(record.target)
        async with self._connection("save_episode", self._tables.episodes, key) as conn:
            await conn.execute(self._episode_upsert, *self._episode_args(record))

        logger.debug("episode_label_saved", target=key)

    async def upsert_frames(self, records: Sequence[FrameRecord]) -> int:
        """Replace-or-insert frame records in one transaction."""
        if not records:
            return 0
        key = record_key(records[0].target, [record.frame_index for record in records])
        async with self._connection("save_frames", self._tables.frames, key) as conn:
            async with conn.transaction():
                await conn.executemany(
                    self._frame_upsert,
                    [self._frame_args(record) for record in records],
                )

        return len(records)

    async def delete_frames(
        self, target: CanonicalTarget, frame_indexes: Collection[int]
    ) -> int:
        """Delete the given frames of target in one statement."""
        if not frame_indexes:
            return 0
        table, key = self._tables.frames, record_key(target, frame_indexes)
        async with self._connection("delete_frames", table, key) as conn:
            result = await conn.execute(
                f"""
                DELETE FROM {table}
                WHERE org_id = $1 AND dataset_id = $2 AND episode_id = $3
                  AND frame_idx = ANY($4::int[])
                """,
                target.org,
                target.dataset,
                str(target.episode),
                sorted(frame_indexes),
            )

        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(result.split()[-1])

    async def clear_episode(self, target: CanonicalTarget) -> None:
        """Delete the episode record and every frame record of target."""
        args = (target.org, target.dataset, str(target.episode))
        tables = f"{self._tables.frames},{self._tables.episodes}"
        async with self._connection("clear_episode", tables, record_key(target)) as conn:
            async with conn.transaction():
                await conn.execute(
                    f"""
                    DELETE FROM {self._tables.frames}
                    WHERE org_id = $1 AND dataset_id = $2 AND episode_id = $3
                    """,
                    *args,
                )
                await conn.execute(
                    f"""
                    DELETE FROM {self._tables.episodes}
                    WHERE org_id = $1 AND dataset_id = $2 AND episode_id = $3
                    """,
                    *args,
                )

        logger.info("episode_labels_cleared", target=str(target))
