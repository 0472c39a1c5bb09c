"""REST implementation of AnnotationStore.

Talks to a PostgREST-compatible endpoint (for example a Supabase project's
``/rest/v1``). Reads are equality filters on the key columns, writes are
upserts with an explicit ``on_conflict`` key, and deletes are equality
filters plus an ``in.(...)`` list of frame indexes.
"""

from collections.abc import Collection, Sequence
from datetime import datetime
from typing import Any

import httpx
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
from labelsync.observability.logging import get_logger

logger = get_logger(__name__)


def _jsonable(row: dict[str, Any]) -> dict[str, Any]:
    """Make a row JSON-serializable (timestamps as ISO strings)."""
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in row.items()
    }


def _key_filters(target: CanonicalTarget) -> dict[str, str]:
    return {
        "org_id": f"eq.{target.org}",
        "dataset_id": f"eq.{target.dataset}",
        "episode_id": f"eq.{target.episode}",
    }


class PostgRESTAnnotationStore(AnnotationStore):
    """AnnotationStore backed by a PostgREST-style HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        tables: TableNames | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the REST store.

        Args:
            base_url: REST root, e.g. https://<project>.supabase.co/rest/v1
            api_key: Key sent as both ``apikey`` and bearer token
            tables: Table names
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"

        self._tables = tables or TableNames()
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "PostgRESTAnnotationStore":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str],
        json: list[dict[str, Any]] | None = None,
        prefer: str | None = None,
        key: str | None = None,
    ) -> httpx.Response:
        """Send one request and map failures onto the StoreError hierarchy.

        ``key`` names the record being read or written in raised errors.
        """
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            logger.warning("postgrest_timeout", method=method, table=table, key=key)
            raise ConnectionError(
                "Request timed out", cause=e, table=table, key=key
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "postgrest_http_error", method=method, table=table, key=key, error=str(e)
            )
            raise ConnectionError(
                f"Request failed: {e}", cause=e, table=table, key=key
            ) from e

        if response.is_success:
            return response

        message = f"{method} failed: {response.status_code} {response.text[:200]}"
        logger.warning(
            "postgrest_error_response",
            method=method,
            table=table,
            key=key,
            status_code=response.status_code,
            response_preview=response.text[:200],
        )
        if response.status_code == 404:
            error_type: type[StoreError] = NotFoundError
        elif response.status_code == 409:
            error_type = ConflictError
        elif response.status_code in (400, 422):
            error_type = ValidationError
        elif response.status_code >= 500:
            error_type = ConnectionError
        else:
            error_type = StoreError
        raise error_type(message, table=table, key=key)

    async def get_episode(self, target: CanonicalTarget) -> EpisodeRecord | None:
        """Get the episode record stored under target."""
        table, key = self._tables.episodes, record_key(target)
        params = {"select": ",".join(EPISODE_COLUMNS), **_key_filters(target), "limit": "1"}
        response = await self._request("GET", table, params, key=key)
        rows = response.json()
        if not rows:
            return None
        try:
            return row_to_episode(rows[0])
        except PydanticValidationError as e:
            raise ValidationError(
                f"Stored episode label is invalid: {e}", cause=e, table=table, key=key
            ) from e

    async def list_frames(self, target: CanonicalTarget) -> list[FrameRecord]:
        """List the frame records of target, ordered by frame index."""
        params = {
            "select": ",".join(FRAME_COLUMNS),
            **_key_filters(target),
            "order": "frame_idx.asc",
        }
        table = self._tables.frames
        response = await self._request("GET", table, params, key=record_key(target))
        frames = []
        for row in response.json():
            try:
                frames.append(row_to_frame(row))
            except PydanticValidationError as e:
                key = record_key(target, [row.get("frame_idx")])
                raise ValidationError(
                    f"Stored frame label is invalid: {e}", cause=e, table=table, key=key
                ) from e
        return frames

    async def ensure_labeller(self, labeller_id: str) -> None:
        """Register a labeller if not already known."""
        await self._request(
            "POST",
            self._tables.labellers,
            {"on_conflict": "labeller_id"},
            json=[{"labeller_id": labeller_id}],
            prefer="resolution=ignore-duplicates,return=minimal",
            key=labeller_id,
        )

    async def upsert_episode(self, record: EpisodeRecord) -> None:
        """Replace the episode record with the same key, or insert it."""
        await self._request(
            "POST",
            self._tables.episodes,
            {"on_conflict": ",".join(EPISODE_CONFLICT_KEY)},
            json=[_jsonable(episode_to_row(record))],
            prefer="resolution=merge-duplicates,return=minimal",
            key=record_key(record.target),
        )
        logger.debug("episode_label_saved", target=str(record.target))

    async def upsert_frames(self, records: Sequence[FrameRecord]) -> int:
        """Replace-or-insert frame records in one bulk request."""
        if not records:
            return 0
        await self._request(
            "POST",
            self._tables.frames,
            {"on_conflict": ",".join(FRAME_CONFLICT_KEY)},
            json=[_jsonable(frame_to_row(record)) for record in records],
            prefer="resolution=merge-duplicates,return=minimal",
            key=record_key(records[0].target, [record.frame_index for record in records]),
        )
        return len(records)

    async def delete_frames(
        self, target: CanonicalTarget, frame_indexes: Collection[int]
    ) -> int:
        """Delete the given frames of target in one request."""
        if not frame_indexes:
            return 0
        params = {
            **_key_filters(target),
            "frame_idx": f"in.({','.join(str(i) for i in sorted(frame_indexes))})",
            "select": "frame_idx",
        }
        response = await self._request(
            "DELETE",
            self._tables.frames,
            params,
            prefer="return=representation",
            key=record_key(target, frame_indexes),
        )
        return len(response.json())

    async def clear_episode(self, target: CanonicalTarget) -> None:
        """Delete the episode record and every frame record of target.

        Frames go first so a failure never leaves frames without their episode.
        """
        key = record_key(target)
        await self._request("DELETE", self._tables.frames, _key_filters(target), key=key)
        await self._request("DELETE", self._tables.episodes, _key_filters(target), key=key)
        logger.info("episode_labels_cleared", target=str(target))
