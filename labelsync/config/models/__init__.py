"""Configuration section models."""

from labelsync.config.models.annotation import AnnotationConfig
from labelsync.config.models.dataset_host import DatasetHostConfig
from labelsync.config.models.observability import LoggingConfig, ObservabilityConfig
from labelsync.config.models.storage import (
    PostgRESTConfig,
    PostgresConfig,
    StorageConfig,
    TableNames,
)

__all__ = [
    "AnnotationConfig",
    "DatasetHostConfig",
    "LoggingConfig",
    "ObservabilityConfig",
    "PostgRESTConfig",
    "PostgresConfig",
    "StorageConfig",
    "TableNames",
]
