"""
HTTP transport for event batches.

Issues exactly one POST per upload attempt and hands the raw status and body
back to the caller. Interpreting the response is the reconciler's job.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from core.buffer import codec
from core.exceptions import NoWriteKeyError, UploadTransportError
from core.models.config import ClientConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Raw response of an upload request"""
    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        """Only 200 carries a structured per-event result"""
        return self.status_code == 200

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        """Decode the body (raises ValueError if it is not JSON)"""
        return codec.decode_response(self.body)


class UploadTransport:
    """Serializes a batch request and POSTs it to the project's events endpoint"""

    def __init__(self, config: ClientConfig):
        self.config = config

    @property
    def url(self) -> str:
        return self.config.events_url

    def build_headers(self) -> Dict[str, str]:
        """Request headers; the write key is sent as-is in Authorization"""
        write_key = self.config.write_key
        if not write_key:
            raise NoWriteKeyError("You can't send events to Keen IO if you haven't set a write key.")

        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": write_key
        }

    def send(
        self,
        events: Dict[str, List[Dict[str, Any]]],
        timeout: Optional[float] = None
    ) -> TransportResponse:
        """
        POST one batch request.

        Args:
            events: Collection name -> ordered list of events
            timeout: Connect/read timeout in seconds (defaults to server config)

        Returns:
            TransportResponse with whatever status the server answered

        Raises:
            UploadTransportError: the request could not be serialized or completed
        """
        try:
            body = codec.encode(events)
        except (TypeError, ValueError) as e:
            raise UploadTransportError(f"Could not serialize batch request: {e}") from e

        timeout = timeout if timeout is not None else self.config.server.timeout
        logger.info(
            f"Uploading {sum(len(v) for v in events.values())} event(s) "
            f"in {len(events)} collection(s) to {self.url}"
        )

        try:
            response = requests.post(
                self.url,
                data=body,
                headers=self.build_headers(),
                timeout=timeout
            )
        except requests.RequestException as e:
            raise UploadTransportError(f"Request to {self.url} failed: {e}") from e

        return TransportResponse(status_code=response.status_code, body=response.content or b"")
