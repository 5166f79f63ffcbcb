"""
Base Schema Classes

This module provides base classes for REST request bodies, REST response
payloads, and realtime events, with the shared serialization and
deserialization methods.

The backend speaks camelCase JSON while the schemas use snake_case fields;
the conversion happens here so the subclasses only declare their fields.
"""

import json
from dataclasses import asdict, fields
from typing import Any, Dict, Type, TypeVar

T = TypeVar("T", bound="BaseResponse")


def to_camel(name: str) -> str:
    """Convert a snake_case field name to its camelCase wire name."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_wire(obj: Any) -> Dict[str, Any]:
    """Serialize a dataclass instance to a camelCase dictionary."""
    return {to_camel(key): value for key, value in asdict(obj).items()}


class BaseRequest:
    """
    Base class for REST request bodies.

    Subclasses are dataclasses; their fields are sent as a camelCase JSON
    object.
    """

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary keyed by camelCase field names.
        """
        if hasattr(self, "__dataclass_fields__") and fields(self):
            return to_wire(self)
        return {}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())


class BaseResponse:
    """
    Base class for response schemas.

    Provides common deserialization methods for creating response objects
    from dictionary and JSON formats.
    """

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from dictionary.

        Args:
            data: Dictionary containing response data, optionally wrapped
                  in a ``data`` envelope.

        Returns:
            Instance of the response class.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")
        response_data = data.get("data", data)
        return cls._from_data(response_data)

    @classmethod
    def from_json(cls: Type[T], json_str: str) -> T:
        """Create instance from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def _from_data(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from response data dictionary.

        Should be overridden by subclasses for custom deserialization.
        """
        return cls(**data)


class BaseEvent(BaseResponse):
    """
    Base class for realtime events.

    Events travel inside the envelope ``{"type": <event>, "data": {...}}``
    with camelCase payload keys.
    """

    event_type = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire envelope."""
        return {"type": self.event_type, "data": self.payload()}

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())

    def payload(self) -> Dict[str, Any]:
        """The event body without the envelope."""
        return to_wire(self)
