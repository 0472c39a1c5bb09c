"""Annotation store backends."""

from labelsync.annotations.store import AnnotationStore
from labelsync.annotations.stores.inmemory import InMemoryAnnotationStore
from labelsync.annotations.stores.postgres import PostgresAnnotationStore
from labelsync.annotations.stores.postgrest import PostgRESTAnnotationStore

__all__ = [
    "AnnotationStore",
    "InMemoryAnnotationStore",
    "PostgresAnnotationStore",
    "PostgRESTAnnotationStore",
]
