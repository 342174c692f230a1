"""
Local event buffering.

- EventValidator: collection name and payload rules
- EventStore: bounded directory-per-collection queue on disk
- BatchAssembler: reads every queued event into one upload batch
"""

from .validator import EventValidator, validate_collection_name, validate_event
from .store import EventStore
from .batch import EventBatch, BatchAssembler

__all__ = [
    "EventValidator",
    "validate_collection_name",
    "validate_event",
    "EventStore",
    "EventBatch",
    "BatchAssembler",
]
