"""
Exception hierarchy for keen-client.

Callers of add_event see configuration, credential and validation errors.
Storage and transport errors stay internal and are only logged.
"""


class KeenError(Exception):
    """Base class for all client errors"""
    pass


class KeenConfigurationError(KeenError, ValueError):
    """Invalid client configuration (bad project id, bad server URL, ...)"""
    pass


class KeenInitializationError(KeenError):
    """Local storage root could not be created; the client is inert"""
    pass


class InvalidEventCollectionError(KeenError):
    """Collection name violates the naming rules"""
    pass


class InvalidEventError(KeenError):
    """Event payload violates the key or value rules"""
    pass


class NoWriteKeyError(KeenError):
    """Events cannot be recorded or uploaded without a write key"""
    pass


class KeenClientNotInitializedError(KeenError):
    """The process-wide default client was requested before initialize()"""
    pass


class CorruptRecordError(KeenError):
    """A queued record could not be decoded"""
    pass


class UploadTransportError(KeenError):
    """The upload request could not be completed at the connection level"""
    pass
