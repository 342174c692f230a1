"""
KeenClient: the public entry point for recording and uploading events.

Example:

    client = KeenClient("my_project_id", write_key="my_write_key")
    client.add_event("purchases", {"item": "golden widget", "price": 9.99})
    client.upload()
"""

import logging
from concurrent.futures import Future
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from config.defaults import KEEN_NAMESPACE, TIMESTAMP_PARAM
from core.buffer.store import EventStore
from core.buffer.validator import EventValidator
from core.exceptions import KeenConfigurationError, KeenInitializationError, NoWriteKeyError
from core.models.config import ClientConfig, ServerConfig, StorageConfig
from core.models.results import UploadReport
from core.upload.engine import UploadCoordinator, UploadFinishedCallback
from core.upload.transport import UploadTransport

logger = logging.getLogger(__name__)

GlobalPropertiesEvaluator = Callable[[str], Optional[Mapping[str, Any]]]


class KeenClient:
    """
    Records events into a local per-collection queue and uploads them in batches.

    A client whose storage root cannot be created is inert: add_event and
    upload only log a warning.
    """

    def __init__(
        self,
        project_id: str,
        write_key: Optional[str] = None,
        read_key: Optional[str] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        *,
        server: Optional[Union[ServerConfig, Dict[str, Any]]] = None,
        storage: Optional[Union[StorageConfig, Dict[str, Any]]] = None,
        background_uploads: bool = True
    ):
        """
        Initialize a client.

        Args:
            project_id: Project identifier (required, non-empty)
            write_key: Credential sent with uploads; required by add_event and upload
            read_key: Stored for the host application, unused here
            cache_dir: Application cache root (the queue lives in <cache_dir>/keen)
            server: Ingestion server settings
            storage: Local queue limits
            background_uploads: Upload on a worker thread instead of inline

        Raises:
            KeenConfigurationError: invalid configuration
            KeenInitializationError: the local storage root cannot be created
        """
        data: Dict[str, Any] = {
            'project_id': project_id,
            'write_key': write_key,
            'read_key': read_key,
            'background_uploads': background_uploads
        }
        if cache_dir is not None:
            data['cache_dir'] = Path(cache_dir)
        if server is not None:
            data['server'] = server
        if storage is not None:
            data['storage'] = storage

        try:
            config = ClientConfig(**data)
        except ValidationError as e:
            raise KeenConfigurationError(f"Invalid client configuration: {e}") from e

        self._setup(config)

    @classmethod
    def from_config(cls, config: ClientConfig) -> 'KeenClient':
        """Create a client from an already validated configuration"""
        if not isinstance(config, ClientConfig):
            raise KeenConfigurationError(f"Expected ClientConfig, got {type(config).__name__}")
        client = cls.__new__(cls)
        client._setup(config)
        return client

    def _setup(self, config: ClientConfig) -> None:
        self._config = config
        self._global_properties: Optional[Dict[str, Any]] = None
        self._global_properties_evaluator: Optional[GlobalPropertiesEvaluator] = None
        self._validator = EventValidator()
        self._store = EventStore.from_config(config)
        self._coordinator = UploadCoordinator(
            store=self._store,
            transport=UploadTransport(config),
            background=config.background_uploads
        )
        self._active = True

        logger.info(f"Keen using cache {self._store.root}")
        if not self._store.ensure_root():
            self._active = False
            raise KeenInitializationError(
                "Keen was unable to create a cache directory. Check logs for file permissions "
                "details. Keen has been disabled, recreate your Keen client to try cache "
                "creation again."
            )

    # Configuration accessors

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def project_id(self) -> str:
        return self._config.project_id

    @property
    def write_key(self) -> Optional[str]:
        return self._config.write_key

    @property
    def read_key(self) -> Optional[str]:
        return self._config.read_key

    @property
    def cache_dir(self) -> Path:
        return self._config.cache_dir

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def last_upload_report(self) -> Optional[UploadReport]:
        return self._coordinator.last_report

    @property
    def global_properties(self) -> Optional[Dict[str, Any]]:
        """Static properties merged into every new event"""
        return self._global_properties

    @global_properties.setter
    def global_properties(self, properties: Optional[Mapping[str, Any]]) -> None:
        self._global_properties = dict(properties) if properties is not None else None

    @property
    def global_properties_evaluator(self) -> Optional[GlobalPropertiesEvaluator]:
        """Callable (collection name -> properties) merged over the static properties"""
        return self._global_properties_evaluator

    @global_properties_evaluator.setter
    def global_properties_evaluator(self, evaluator: Optional[GlobalPropertiesEvaluator]) -> None:
        if evaluator is not None and not callable(evaluator):
            raise TypeError("Global properties evaluator must be callable")
        self._global_properties_evaluator = evaluator

    # Operations

    def add_event(
        self,
        event_collection: str,
        event: Mapping[str, Any],
        keen_properties: Optional[Mapping[str, Any]] = None
    ) -> Optional[Path]:
        """
        Validate an event and queue it locally for the next upload.

        Args:
            event_collection: Collection the event belongs to
            event: Event properties
            keen_properties: Reserved metadata; 'timestamp' defaults to now

        Returns:
            Path of the queued record, or None if the client is inactive or the write failed

        Raises:
            NoWriteKeyError: the client has no write key
            InvalidEventCollectionError: bad collection name
            InvalidEventError: bad event payload
        """
        if not self._active:
            logger.warning(
                f"Did not add event because KeenClient is not active. "
                f"Collection: {event_collection}, event: {event}"
            )
            return None

        if not self.write_key:
            raise NoWriteKeyError("You can't send events to Keen IO if you haven't set a write key.")

        self._validator.validate_collection_name(event_collection)
        self._validator.validate_event(event)

        if not self._store.ensure_root():
            self._active = False
            logger.critical("Keen cache directory is no longer usable. Keen has been disabled")
            return None

        new_event = self._build_event(event_collection, event, keen_properties)
        return self._store.enqueue(event_collection, new_event)

    def upload(self, callback: Optional[UploadFinishedCallback] = None) -> Optional[Future]:
        """
        Upload every queued event.

        Never raises. The callback, if given, runs once after reconciliation.

        Returns:
            Future of the UploadReport when uploading in the background, otherwise None
        """
        if not self._active:
            logger.warning("Did not upload events because this KeenClient is not active")
            return None

        return self._coordinator.upload(callback)

    def close(self, wait: bool = True) -> None:
        """Stop the background upload worker"""
        self._coordinator.shutdown(wait=wait)

    def __enter__(self) -> 'KeenClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _build_event(
        self,
        event_collection: str,
        event: Mapping[str, Any],
        keen_properties: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """Merge keen metadata, static globals, evaluator output and the event (later wins)"""
        keen = dict(keen_properties) if keen_properties else {}
        if TIMESTAMP_PARAM not in keen:
            keen[TIMESTAMP_PARAM] = datetime.now(timezone.utc)

        new_event: Dict[str, Any] = {KEEN_NAMESPACE: keen}

        if self._global_properties:
            new_event.update(self._global_properties)

        evaluator = self._global_properties_evaluator
        if evaluator is not None:
            props = evaluator(event_collection)
            if props:
                new_event.update(props)

        new_event.update(event)
        return new_event

    def __repr__(self) -> str:
        return f"KeenClient(project_id={self.project_id!r}, active={self._active})"
