"""Tests for the annotation store factory."""

import pytest

from labelsync.annotations.factory import create_annotation_store
from labelsync.annotations.stores import InMemoryAnnotationStore
from labelsync.annotations.stores.postgres import PostgresAnnotationStore
from labelsync.annotations.stores.postgrest import PostgRESTAnnotationStore
from labelsync.config.models.storage import StorageConfig


class TestCreateAnnotationStore:
    """Tests for create_annotation_store."""

    def test_inmemory_backend(self) -> None:
        """The default backend keeps records in memory."""
        store = create_annotation_store(StorageConfig())
        assert isinstance(store, InMemoryAnnotationStore)

    def test_postgres_backend(self, env_override) -> None:
        """The postgres backend builds a lazily connected pool."""
        with env_override({"LABELSYNC_DATABASE_URL": "postgresql://u:p@db:5432/labels"}):
            store = create_annotation_store(
                StorageConfig.model_validate(
                    {"backend": "postgres", "postgres": {"max_pool_size": 9}}
                )
            )
        assert isinstance(store, PostgresAnnotationStore)
        assert not store._pool.is_connected
        assert store._pool.config.max_pool_size == 9
        assert store._pool.target == "db:5432/labels"

    @pytest.mark.asyncio
    async def test_postgrest_backend(self) -> None:
        """The REST backend uses the configured endpoint."""
        config = StorageConfig.model_validate(
            {"backend": "postgrest", "postgrest": {"url": "https://db.test/rest/v1"}}
        )
        store = create_annotation_store(config)
        assert isinstance(store, PostgRESTAnnotationStore)
        await store.close()

    def test_postgrest_without_url(self) -> None:
        """The REST backend needs an endpoint."""
        with pytest.raises(ValueError, match="postgrest.url"):
            create_annotation_store(StorageConfig(backend="postgrest"))
