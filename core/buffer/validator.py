"""
Collection name and event payload validation.

Runs synchronously before anything is written to the local queue so that an
event the ingestion API would reject for its shape is never persisted.
"""

from collections.abc import Mapping
from typing import Any

from config.defaults import (
    KEEN_NAMESPACE,
    MAX_COLLECTION_NAME_LENGTH,
    MAX_PROPERTY_NAME_LENGTH,
    MAX_STRING_VALUE_LENGTH,
)
from core.exceptions import InvalidEventCollectionError, InvalidEventError


class EventValidator:
    """
    Checks collection names and event payloads against the naming and size rules.

    Rules:
    - Collection names are non-empty strings, do not start with '$' and are at
      most 256 characters long.
    - Events are non-empty mappings without a root-level 'keen' property.
    - Property names are strings without '.', not starting with '$', at most
      256 characters long (checked at every nesting level).
    - String values are shorter than 10,000 characters (checked at every
      nesting level, including inside sequences).
    """

    def __init__(
        self,
        max_collection_name_length: int = MAX_COLLECTION_NAME_LENGTH,
        max_property_name_length: int = MAX_PROPERTY_NAME_LENGTH,
        max_string_value_length: int = MAX_STRING_VALUE_LENGTH
    ):
        self.max_collection_name_length = max_collection_name_length
        self.max_property_name_length = max_property_name_length
        self.max_string_value_length = max_string_value_length

    def validate_collection_name(self, name: Any) -> None:
        """Raise InvalidEventCollectionError if name is not a usable collection name"""
        if not isinstance(name, str) or len(name) == 0:
            raise InvalidEventCollectionError(
                f"You must specify a non-null, non-empty event collection: {name!r}"
            )
        if name.startswith("$"):
            raise InvalidEventCollectionError(
                "An event collection name cannot start with the dollar sign ($) character."
            )
        if len(name) > self.max_collection_name_length:
            raise InvalidEventCollectionError(
                f"An event collection name cannot be longer than "
                f"{self.max_collection_name_length} characters."
            )

    def validate_event(self, event: Any) -> None:
        """Raise InvalidEventError if event cannot be recorded"""
        if not isinstance(event, Mapping) or len(event) == 0:
            raise InvalidEventError("You must specify a non-null, non-empty event.")
        if KEEN_NAMESPACE in event:
            raise InvalidEventError(
                f"An event cannot contain a root-level property named '{KEEN_NAMESPACE}'."
            )
        self._validate_mapping(event)

    def _validate_mapping(self, mapping: Mapping) -> None:
        for key, value in mapping.items():
            self._validate_key(key)
            self._validate_value(value)

    def _validate_key(self, key: Any) -> None:
        if not isinstance(key, str):
            raise InvalidEventError(
                f"An event property name must be a string, got {type(key).__name__}."
            )
        if "." in key:
            raise InvalidEventError(
                "An event cannot contain a property with the period (.) character in it."
            )
        if key.startswith("$"):
            raise InvalidEventError(
                "An event cannot contain a property that starts with the dollar sign ($) "
                "character in it."
            )
        if len(key) > self.max_property_name_length:
            raise InvalidEventError(
                f"An event cannot contain a property name longer than "
                f"{self.max_property_name_length} characters."
            )

    def _validate_value(self, value: Any) -> None:
        if isinstance(value, str):
            if len(value) >= self.max_string_value_length:
                raise InvalidEventError(
                    f"An event cannot contain a string property value longer than "
                    f"{self.max_string_value_length - 1:,} characters."
                )
        elif isinstance(value, Mapping):
            self._validate_mapping(value)
        elif isinstance(value, (list, tuple)):
            for item in value:
                self._validate_value(item)


_default_validator = EventValidator()


def validate_collection_name(name: Any) -> None:
    """Validate a collection name with the default limits"""
    _default_validator.validate_collection_name(name)


def validate_event(event: Any) -> None:
    """Validate an event payload with the default limits"""
    _default_validator.validate_event(event)
