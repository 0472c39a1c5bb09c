"""AnnotationStore factory for creating backend instances.

Connection secrets are read from the environment:
- LABELSYNC_DATABASE_URL or DATABASE_URL: PostgreSQL connection string
- LABELSYNC_STORAGE__POSTGREST__URL / __API_KEY: REST endpoint and key
"""

from labelsync.annotations.store import AnnotationStore
from labelsync.annotations.stores.inmemory import InMemoryAnnotationStore
from labelsync.config.models.storage import StorageConfig
from labelsync.observability.logging import get_logger

logger = get_logger(__name__)


def create_annotation_store(config: StorageConfig) -> AnnotationStore:
    """Create an AnnotationStore instance based on configuration.

    Raises:
        ValueError: If the backend is not supported or lacks its endpoint
    """
    backend = config.backend

    if backend == "inmemory":
        logger.info("creating_annotation_store", backend="inmemory")
        return InMemoryAnnotationStore()

    elif backend == "postgres":
        from labelsync.annotations.stores.postgres import PostgresAnnotationStore
        from labelsync.db.pool import PostgresPool

        pool = PostgresPool(config=config.postgres)
        logger.info(
            "creating_annotation_store",
            backend="postgres",
            database=pool.target,
            max_pool_size=config.postgres.max_pool_size,
        )
        return PostgresAnnotationStore(pool=pool, tables=config.tables)

    elif backend == "postgrest":
        from labelsync.annotations.stores.postgrest import PostgRESTAnnotationStore

        if not config.postgrest.url:
            raise ValueError("storage.postgrest.url is required for the postgrest backend")

        logger.info(
            "creating_annotation_store",
            backend="postgrest",
            url=config.postgrest.url,
            has_api_key=bool(config.postgrest.api_key),
        )
        return PostgRESTAnnotationStore(
            base_url=config.postgrest.url,
            api_key=config.postgrest.api_key,
            tables=config.tables,
            timeout=config.postgrest.timeout,
        )

    raise ValueError(f"Unsupported annotation store backend: {backend}")
