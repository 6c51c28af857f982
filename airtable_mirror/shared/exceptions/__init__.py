"""
Excepciones personalizadas del espejo.
"""
from airtable_mirror.shared.exceptions.base import MirrorException
from airtable_mirror.shared.exceptions.domain import (
    BatchLimitError,
    ConfigError,
    RemoteCallError,
    SchemaError,
    StorageError,
    ValidationError,
)

__all__ = [
    "MirrorException",
    "BatchLimitError",
    "ConfigError",
    "RemoteCallError",
    "SchemaError",
    "StorageError",
    "ValidationError",
]
