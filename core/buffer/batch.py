"""
Batch assembly from the local event queue.

Builds the in-memory upload request (collection -> events) together with the
parallel list of record paths each event came from, so results can later be
matched back to files by position.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from core.buffer.store import EventStore
from core.exceptions import CorruptRecordError

logger = logging.getLogger(__name__)


@dataclass
class EventBatch:
    """
    Events read from the queue for one upload attempt.

    events[c][i] was read from records[c][i]; the two are always the same
    length for every collection.
    """
    events: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    records: Dict[str, List[Path]] = field(default_factory=dict)
    quarantined: int = 0
    unreadable: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    def add(self, collection: str, event: Dict[str, Any], record: Path) -> None:
        self.events.setdefault(collection, []).append(event)
        self.records.setdefault(collection, []).append(record)

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to upload"""
        return not self.events

    @property
    def event_count(self) -> int:
        """Number of events across all collections"""
        return sum(len(events) for events in self.events.values())

    @property
    def collections(self) -> List[str]:
        return list(self.events.keys())

    def records_for(self, collection: str) -> List[Path]:
        return self.records.get(collection, [])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging"""
        return {
            "collections": {name: len(events) for name, events in self.events.items()},
            "event_count": self.event_count,
            "quarantined": self.quarantined,
            "unreadable": self.unreadable,
            "created_at": self.created_at.isoformat()
        }


class BatchAssembler:
    """Reads every queued event across all collections into an EventBatch"""

    def __init__(self, store: EventStore):
        self.store = store

    def build_batch(self) -> EventBatch:
        """
        Read all queued records.

        Records that cannot be decoded are quarantined and left out of the batch.
        Records that cannot be read at all stay where they are for the next attempt.
        """
        batch = EventBatch()

        for collection in self.store.list_collections():
            with self.store.collection_lock(collection):
                for record in self.store.list_records(collection):
                    try:
                        event = self.store.read_record(record)
                    except CorruptRecordError as e:
                        logger.error(f"Skipping undecodable record: {e}")
                        if self.store.quarantine(record) is not None:
                            batch.quarantined += 1
                        continue
                    except OSError as e:
                        logger.warning(f"Could not read record {record}, leaving it for the next upload: {e}")
                        batch.unreadable += 1
                        continue

                    batch.add(collection, event, record)

        if batch.quarantined:
            logger.warning(f"Quarantined {batch.quarantined} corrupt record(s) during batch assembly")

        logger.debug(f"Assembled batch: {batch.to_dict()}")
        return batch
