"""
Durable per-collection event queue on local storage.

Layout: <root>/<collection dir>/<millis>.<counter>, one JSON file per queued event.

Collection directories are the percent-encoded collection name. Names whose
encoded form does not fit in one path component get "#<sha256>" instead, with
the real name kept in a ".collection" file inside the directory.

Record names are fixed width and never go backwards within a collection, so
lexicographic order equals enqueue order, which is what eviction and batch
assembly rely on.

Storage failures never propagate: they are logged and the calling operation
carries on as if it had succeeded.
"""

import hashlib
import logging
import re
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

from config.defaults import (
    COLLECTION_NAME_FILE,
    HASHED_DIRNAME_PREFIX,
    MAX_DIRNAME_BYTES,
    QUARANTINE_DIRNAME,
    RECORD_COUNTER_WIDTH,
    RECORD_MILLIS_WIDTH,
)
from core.buffer import codec
from core.models.config import ClientConfig

logger = logging.getLogger(__name__)

RECORD_NAME_PATTERN = re.compile(r"^\d+\.\d+$")
MAX_RECORD_COUNTER = 10 ** RECORD_COUNTER_WIDTH - 1


def encode_collection_dirname(collection: str) -> Optional[str]:
    """
    Directory name for a collection, or None if it has none.

    The result is ASCII, never starts with '.', and is at most
    MAX_DIRNAME_BYTES long.
    """
    if not collection:
        return None
    try:
        encoded = quote(collection, safe="")
    except UnicodeEncodeError:
        return None

    if encoded.startswith("."):
        encoded = "%2E" + encoded[1:]
    if len(encoded) > MAX_DIRNAME_BYTES:
        digest = hashlib.sha256(collection.encode('utf-8')).hexdigest()
        return f"{HASHED_DIRNAME_PREFIX}{digest}"
    return encoded


class EventStore:
    """
    Bounded, directory-per-collection, file-per-event queue.

    Features:
    - Lazy creation of collection directories
    - Any collection name maps to a valid, reversible directory name
    - Oldest-first eviction once a collection reaches capacity
    - Collision-free, monotonic record naming within a collection
    - Per-collection locks so eviction and batch reads see a stable directory
    - Quarantine for records that can no longer be decoded
    """

    def __init__(
        self,
        root: Path,
        max_events_per_collection: int = 1000,
        events_to_forget: int = 2
    ):
        """
        Initialize the event store.

        Args:
            root: Directory holding one sub-directory per collection
            max_events_per_collection: Record count that triggers eviction
            events_to_forget: Number of oldest records evicted at capacity
        """
        self.root = Path(root)
        self.max_events_per_collection = max_events_per_collection
        self.events_to_forget = events_to_forget

        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

        logger.debug(
            f"Initialized EventStore at {self.root} "
            f"(capacity={max_events_per_collection}, forget={events_to_forget})"
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> 'EventStore':
        """Create a store for a client configuration"""
        return cls(
            root=config.storage_root,
            max_events_per_collection=config.storage.max_events_per_collection,
            events_to_forget=config.storage.events_to_forget
        )

    @property
    def quarantine_dir(self) -> Path:
        return self.root / QUARANTINE_DIRNAME

    def ensure_root(self) -> bool:
        """Create the store root if needed; False if it is not a usable directory"""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create event cache directory at {self.root}: {e}")
            return False

        if not self._is_dir(self.root):
            logger.error(f"Event cache path {self.root} exists but is not a directory")
            return False
        return True

    def collection_lock(self, collection: str) -> threading.RLock:
        """Lock guarding whole-directory operations on one collection"""
        with self._locks_guard:
            lock = self._locks.get(collection)
            if lock is None:
                lock = threading.RLock()
                self._locks[collection] = lock
            return lock

    def collection_dir(self, collection: str) -> Optional[Path]:
        """Directory for a collection, or None if the name cannot be stored"""
        dirname = encode_collection_dirname(collection)
        if dirname is None:
            logger.error(f"Collection name {collection!r} cannot be stored on disk")
            return None
        return self.root / dirname

    def enqueue(self, collection: str, event: Dict[str, Any]) -> Optional[Path]:
        """
        Persist one event at the tail of a collection's queue.

        Returns:
            Path of the new record, or None if it could not be written
        """
        try:
            payload = codec.encode(event)
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialize event for collection '{collection}': {e}")
            return None

        with self.collection_lock(collection):
            directory = self._ensure_collection_dir(collection)
            if directory is None:
                return None

            records = self._list_record_paths(directory)
            millis, counter = self._next_record_key(records)
            if len(records) >= self.max_events_per_collection:
                self._evict(collection, records)

            logger.debug(f"Adding event to collection: {collection}")
            return self._write_record(directory, payload, millis, counter)

    def list_records(self, collection: str) -> List[Path]:
        """Queued records for a collection, oldest first"""
        directory = self.collection_dir(collection)
        if directory is None or not self._is_dir(directory):
            return []
        return self._list_record_paths(directory)

    def count(self, collection: str) -> int:
        """Number of queued records in a collection"""
        return len(self.list_records(collection))

    def delete(self, record: Path) -> bool:
        """Best-effort removal of one record; failures are logged"""
        try:
            record.unlink()
        except FileNotFoundError:
            logger.warning(f"Record {record} was already removed")
            return True
        except OSError as e:
            logger.error(f"Could not remove event at {record}: {e}")
            return False

        logger.debug(f"Deleted record {record}")
        return True

    def list_collections(self) -> List[str]:
        """Names of the collections that have a directory under the root, sorted"""
        if not self._is_dir(self.root):
            return []
        try:
            entries = sorted(self.root.iterdir())
        except OSError as e:
            logger.error(f"Could not list collections in {self.root}: {e}")
            return []

        collections = []
        for entry in entries:
            if entry.name == QUARANTINE_DIRNAME or not self._is_dir(entry):
                continue
            collection = self._collection_name(entry)
            if collection is not None:
                collections.append(collection)
        return sorted(collections)

    def read_record(self, record: Path) -> Dict[str, Any]:
        """
        Load one queued event.

        Raises:
            OSError: the record could not be read
            CorruptRecordError: the record was read but is not a JSON object
        """
        raw = record.read_bytes()
        return codec.decode_event(raw, source=str(record))

    def quarantine(self, record: Path) -> Optional[Path]:
        """Move an undecodable record out of its collection so it is not retried"""
        target_dir = self.quarantine_dir / record.parent.name
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / record.name
            suffix = 0
            while target.exists():
                suffix += 1
                target = target_dir / f"{record.name}-{suffix}"
            record.rename(target)
        except OSError as e:
            logger.error(f"Could not quarantine corrupt record {record}: {e}")
            return None

        logger.warning(f"Quarantined corrupt record {record} -> {target}")
        return target

    def list_quarantined(self) -> List[Path]:
        """Records moved to quarantine, across all collections"""
        if not self._is_dir(self.quarantine_dir):
            return []
        try:
            return sorted(p for p in self.quarantine_dir.rglob("*") if p.is_file())
        except OSError as e:
            logger.error(f"Could not list quarantined records in {self.quarantine_dir}: {e}")
            return []

    def _is_dir(self, path: Path) -> bool:
        try:
            return path.is_dir()
        except OSError as e:
            logger.error(f"Could not inspect {path}: {e}")
            return False

    def _ensure_collection_dir(self, collection: str) -> Optional[Path]:
        directory = self.collection_dir(collection)
        if directory is None:
            return None
        if not self._is_dir(directory):
            logger.info(f"Cache directory for event collection '{collection}' doesn't exist. Creating it.")
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Can't create dir {directory}: {e}")
                return None

        if directory.name.startswith(HASHED_DIRNAME_PREFIX) \
                and not self._claim_hashed_dir(directory, collection):
            return None
        return directory

    def _claim_hashed_dir(self, directory: Path, collection: str) -> bool:
        """Record the collection name in a hashed directory, or confirm it is already there"""
        name_file = directory / COLLECTION_NAME_FILE
        try:
            if name_file.is_file():
                stored = name_file.read_text(encoding='utf-8')
                if stored == collection:
                    return True
                logger.error(
                    f"Directory {directory} belongs to collection {stored!r}, not {collection!r}"
                )
                return False

            partial = directory / f"{COLLECTION_NAME_FILE}.tmp"
            partial.write_text(collection, encoding='utf-8')
            partial.replace(name_file)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Could not record collection name in {directory}: {e}")
            return False
        return True

    def _collection_name(self, directory: Path) -> Optional[str]:
        """Collection stored in a directory, or None if it is not a collection directory"""
        dirname = directory.name
        if dirname.startswith(HASHED_DIRNAME_PREFIX):
            try:
                collection = (directory / COLLECTION_NAME_FILE).read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping {directory}: collection name unreadable: {e}")
                return None
        else:
            collection = unquote(dirname)

        if encode_collection_dirname(collection) != dirname:
            logger.warning(f"Skipping {directory}: not a collection directory")
            return None
        return collection

    def _list_record_paths(self, directory: Path) -> List[Path]:
        try:
            return sorted(
                entry for entry in directory.iterdir()
                if entry.is_file() and RECORD_NAME_PATTERN.match(entry.name)
            )
        except OSError as e:
            logger.error(f"Could not list records in {directory}: {e}")
            return []

    def _evict(self, collection: str, records: List[Path]) -> None:
        logger.warning(
            f"Too many events in cache for {collection}, aging out old data "
            f"(count: {len(records)}, max: {self.max_events_per_collection})"
        )
        for record in records[:self.events_to_forget]:
            if not self.delete(record):
                logger.critical(f"Can't delete file {record}, cache is going to be too big")

    def _next_record_key(self, records: List[Path]) -> Tuple[int, int]:
        """Current time, moved past the newest existing record if the clock is behind it"""
        millis = int(time.time() * 1000)
        if records:
            last_millis, last_counter = self._parse_record_name(records[-1].name)
            if millis <= last_millis:
                if millis < last_millis:
                    logger.debug(f"Clock is behind newest record {records[-1].name}; continuing after it")
                return self._advance(last_millis, last_counter)
        return millis, 0

    def _write_record(
        self,
        directory: Path,
        payload: bytes,
        millis: int,
        counter: int
    ) -> Optional[Path]:
        while True:
            path = directory / self._record_name(millis, counter)
            try:
                handle = open(path, 'xb')
            except FileExistsError:
                millis, counter = self._advance(millis, counter)
                continue
            except OSError as e:
                logger.error(f"There was an error while writing an event to {path}: {e}")
                return None

            try:
                with handle:
                    handle.write(payload)
            except OSError as e:
                logger.error(f"There was an error while writing an event to {path}: {e}")
                self._discard_partial(path)
                return None
            return path

    def _discard_partial(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Could not remove partially written record {path}: {e}")

    @staticmethod
    def _advance(millis: int, counter: int) -> Tuple[int, int]:
        # Counter stays fixed width; roll into the next millisecond instead of growing
        if counter >= MAX_RECORD_COUNTER:
            return millis + 1, 0
        return millis, counter + 1

    @staticmethod
    def _parse_record_name(name: str) -> Tuple[int, int]:
        millis, counter = name.split('.')
        return int(millis), int(counter)

    @staticmethod
    def _record_name(millis: int, counter: int) -> str:
        return f"{millis:0{RECORD_MILLIS_WIDTH}d}.{counter:0{RECORD_COUNTER_WIDTH}d}"
