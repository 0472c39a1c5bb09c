"""Annotation store backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "postgres", "postgrest"]


class TableNames(BaseModel):
    """Table names used by every annotation store backend."""

    episodes: str = Field(default="episode_labels", description="Episode-level records")
    frames: str = Field(default="frame_labels", description="Frame-level records")
    labellers: str = Field(default="labellers", description="Labeller registry")


class PostgresConfig(BaseModel):
    """PostgreSQL-specific configuration.

    The DSN itself comes from LABELSYNC_DATABASE_URL / DATABASE_URL,
    never from config files.
    """

    min_pool_size: int = Field(
        default=1,
        gt=0,
        description="Minimum connections to keep open",
    )
    max_pool_size: int = Field(
        default=5,
        gt=0,
        description="Maximum connections in pool",
    )
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Close connections idle longer than this (seconds)",
    )
    command_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Default timeout for queries (seconds)",
    )


class PostgRESTConfig(BaseModel):
    """REST endpoint configuration (PostgREST / Supabase style).

    Note: the API key should come from LABELSYNC_STORAGE__POSTGREST__API_KEY,
    not from a committed TOML file.
    """

    url: str | None = Field(
        default=None,
        description="Base REST URL, e.g. https://<project>.supabase.co/rest/v1",
    )
    api_key: str | None = Field(default=None, description="Anon or service key")
    timeout: float = Field(default=15.0, gt=0, description="Request timeout in seconds")


class StorageConfig(BaseModel):
    """Configuration for the annotation store."""

    backend: BackendType = Field(
        default="inmemory",
        description="Annotation store backend",
    )
    tables: TableNames = Field(default_factory=TableNames)
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    postgrest: PostgRESTConfig = Field(default_factory=PostgRESTConfig)
