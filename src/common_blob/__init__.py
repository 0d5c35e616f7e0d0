"""Unified blob storage abstraction over Amazon S3 and Google Cloud Storage."""

from .base import Attributes, CloudStorage, ListObject, ListOptions, SignedURLOption
from .config import CloudStorageOption
from .exceptions import (
    StorageAuthenticationError,
    StorageConfigurationError,
    StorageConnectionError,
    StorageError,
    StorageInvalidRangeError,
    StorageNotFoundError,
    StoragePermissionError,
    UnsupportedProviderError,
)
from .factory import new_cloud_storage, new_cloud_storage_from_env
from .iterator import ListIterator

__all__ = [
    "Attributes",
    "CloudStorage",
    "CloudStorageOption",
    "ListIterator",
    "ListObject",
    "ListOptions",
    "SignedURLOption",
    "StorageAuthenticationError",
    "StorageConfigurationError",
    "StorageConnectionError",
    "StorageError",
    "StorageInvalidRangeError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "UnsupportedProviderError",
    "new_cloud_storage",
    "new_cloud_storage_from_env",
]
