"""
keen-client - local event buffering and batch upload.

Applications record structured events into named collections; the client
queues them durably on local storage and ships accumulated batches to the
ingestion API, deleting each queued event once the server has accepted it
(or rejected it for good).
"""

__version__ = "1.0.0"

# Package imports for convenient access
from core.exceptions import (
    KeenError,
    KeenConfigurationError,
    KeenInitializationError,
    InvalidEventCollectionError,
    InvalidEventError,
    NoWriteKeyError,
    KeenClientNotInitializedError,
)
from core.models.config import ClientConfig, ServerConfig, StorageConfig
from core.models.results import UploadReport, UploadStatus
from .client import KeenClient, GlobalPropertiesEvaluator
from .registry import initialize, get_client, is_initialized, reset
from .logging_setup import configure_logging, disable_logging

__all__ = [
    "KeenClient",
    "GlobalPropertiesEvaluator",
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
    "KeenClientNotInitializedError",
    "initialize",
    "get_client",
    "is_initialized",
    "reset",
    "configure_logging",
    "disable_logging",
    "__version__",
]
