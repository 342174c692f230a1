"""
keen-client core package

Local event buffering, batch assembly, upload and response reconciliation.
"""

__version__ = "1.0.0"

from .models import ClientConfig, ServerConfig, StorageConfig, UploadReport, UploadStatus
from .exceptions import (
    KeenError,
    KeenConfigurationError,
    KeenInitializationError,
    InvalidEventCollectionError,
    InvalidEventError,
    NoWriteKeyError,
)

__all__ = [
    "ClientConfig",
    "ServerConfig",
    "StorageConfig",
    "UploadReport",
    "UploadStatus",
    "KeenError",
    "KeenConfigurationError",
    "KeenInitializationError",
    "InvalidEventCollectionError",
    "InvalidEventError",
    "NoWriteKeyError",
]
