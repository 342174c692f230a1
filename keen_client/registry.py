"""
Process-wide default client.

Convenience layer over explicit KeenClient construction for applications that
want one globally reachable instance.
"""

import logging
import threading
from typing import Any, Optional

from core.exceptions import KeenClientNotInitializedError
from .client import KeenClient

logger = logging.getLogger(__name__)

_default_client: Optional[KeenClient] = None
_registry_lock = threading.Lock()


def initialize(
    project_id: str,
    write_key: Optional[str] = None,
    read_key: Optional[str] = None,
    **options: Any
) -> KeenClient:
    """
    Create the default client, replacing any previous one.

    Raises the same errors as KeenClient(); on failure the previous default is kept.
    """
    global _default_client

    new_client = KeenClient(project_id, write_key, read_key, **options)
    with _registry_lock:
        previous, _default_client = _default_client, new_client

    if previous is not None:
        logger.info("Replacing previously initialized default KeenClient")
        previous.close(wait=False)
    return new_client


def get_client() -> KeenClient:
    """Return the default client"""
    with _registry_lock:
        if _default_client is None:
            raise KeenClientNotInitializedError(
                "Please call keen_client.initialize() before requesting the shared client."
            )
        return _default_client


def is_initialized() -> bool:
    with _registry_lock:
        return _default_client is not None


def reset() -> None:
    """Close and forget the default client"""
    global _default_client

    with _registry_lock:
        previous, _default_client = _default_client, None
    if previous is not None:
        previous.close()
