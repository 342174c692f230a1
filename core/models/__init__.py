"""
Core data models for keen-client

Pydantic models for configuration and upload responses, plus upload outcome reports.
"""

from .config import ClientConfig, ServerConfig, StorageConfig, GlobalSettings
from .results import (
    ErrorDetail,
    EventResult,
    RecordOutcome,
    UploadStatus,
    ReconciliationReport,
    UploadReport,
)

__all__ = [
    # Configuration
    "ClientConfig",
    "ServerConfig",
    "StorageConfig",
    "GlobalSettings",

    # Upload results
    "ErrorDetail",
    "EventResult",
    "RecordOutcome",
    "UploadStatus",
    "ReconciliationReport",
    "UploadReport",
]
