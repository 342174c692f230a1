"""
Batch upload to the ingestion API.

- UploadTransport: one HTTP POST per batch
- ResponseReconciler: per-event delete/retain decisions
- UploadCoordinator: serialized upload cycles, inline or on a worker thread
"""

from .transport import UploadTransport, TransportResponse
from .reconciler import ResponseReconciler
from .engine import UploadCoordinator, UploadFinishedCallback

__all__ = [
    "UploadTransport",
    "TransportResponse",
    "ResponseReconciler",
    "UploadCoordinator",
    "UploadFinishedCallback",
]
