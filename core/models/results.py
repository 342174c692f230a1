"""
Upload response and outcome models.

EventResult/ErrorDetail mirror the per-event objects returned by the
ingestion API. UploadReport and ReconciliationReport describe what one
upload cycle did to the local queue.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict


class ErrorDetail(BaseModel):
    """Server-reported reason an event was rejected"""
    model_config = ConfigDict(extra='ignore')

    name: str
    description: Optional[str] = None


class EventResult(BaseModel):
    """Outcome of one event in an upload response"""
    model_config = ConfigDict(extra='ignore')

    success: bool
    error: Optional[ErrorDetail] = None

    @property
    def error_name(self) -> Optional[str]:
        return self.error.name if self.error else None

    @property
    def error_description(self) -> Optional[str]:
        return self.error.description if self.error else None


class RecordOutcome(Enum):
    """Final state of a queued record after reconciliation"""
    DELETED = "deleted"     # accepted, or rejected for good
    RETAINED = "retained"   # kept for the next upload cycle


class UploadStatus(Enum):
    """How an upload cycle ended"""
    NO_EVENTS = "no_events"
    COMPLETED = "completed"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"
    MALFORMED_RESPONSE = "malformed_response"


@dataclass
class ReconciliationReport:
    """Per-record decisions taken for one upload response"""
    deleted: List[Path] = field(default_factory=list)
    retained: List[Path] = field(default_factory=list)
    dropped_invalid: int = 0
    delete_failures: int = 0
    anomalies: List[str] = field(default_factory=list)

    def record(self, path: Path, outcome: RecordOutcome) -> None:
        if outcome is RecordOutcome.DELETED:
            self.deleted.append(path)
        else:
            self.retained.append(path)

    @property
    def total(self) -> int:
        return len(self.deleted) + len(self.retained)


@dataclass
class UploadReport:
    """Summary of one upload cycle"""
    status: UploadStatus
    events_sent: int = 0
    collections: List[str] = field(default_factory=list)
    quarantined: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None
    reconciliation: Optional[ReconciliationReport] = None
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def request_attempted(self) -> bool:
        """Whether the cycle tried to reach the network"""
        return self.status is not UploadStatus.NO_EVENTS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging"""
        data = {
            "status": self.status.value,
            "events_sent": self.events_sent,
            "collections": list(self.collections),
            "quarantined": self.quarantined,
            "status_code": self.status_code,
            "error": self.error,
            "started_at": self.started_at.isoformat()
        }
        if self.reconciliation is not None:
            data["deleted"] = len(self.reconciliation.deleted)
            data["retained"] = len(self.reconciliation.retained)
        return data
