"""
Error Taxonomy for Room Directory Operations

Every failure of a REST room operation is normalized into one ErrorKind so
that the coordinator can decide what to surface without looking at HTTP
details.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Kinds of failures a room directory operation can report."""

    CONFLICT = "Conflict"
    NOT_FOUND = "NotFound"
    ROOM_FULL = "RoomFull"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NETWORK_UNAVAILABLE = "NetworkUnavailable"
    UNKNOWN = "Unknown"


# Fallback messages used when the backend payload carries no error text
DEFAULT_MESSAGES = {
    ErrorKind.CONFLICT: "Room already exists",
    ErrorKind.NOT_FOUND: "Room not found",
    ErrorKind.ROOM_FULL: "Room is full",
    ErrorKind.UNAUTHORIZED: "You must be logged in",
    ErrorKind.FORBIDDEN: "Only the room host can do that",
    ErrorKind.NETWORK_UNAVAILABLE: "Could not reach the server",
    ErrorKind.UNKNOWN: "Unexpected server error",
}

# Backend text returned when joining a room the user is already in
ALREADY_MEMBER_TEXT = "already in room"


class DirectoryError(Exception):
    """
    Raised by the room directory client when an operation fails.

    Attributes:
        kind: Normalized failure kind
        message: Human-readable message, taken from the backend payload
                 when one was present
        status_code: HTTP status code, if a response was received
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message or DEFAULT_MESSAGES[kind])

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the user."""
        return self.message or DEFAULT_MESSAGES[self.kind]

    def __repr__(self) -> str:
        return (
            f"DirectoryError(kind={self.kind.value}, "
            f"message={self.message!r}, status_code={self.status_code})"
        )


def error_text(payload: Any) -> Optional[str]:
    """Extract the backend's ``{"error": ...}`` text from a response body."""
    if isinstance(payload, dict):
        text = payload.get("error")
        if isinstance(text, str) and text.strip():
            return text.strip()
    return None


def is_already_member(status_code: int, message: Optional[str]) -> bool:
    """Whether a join response means the user is already in the room."""
    return (
        status_code == 400
        and message is not None
        and ALREADY_MEMBER_TEXT in message.lower()
    )


def classify_response(status_code: int, message: Optional[str]) -> ErrorKind:
    """
    Map an HTTP error status and backend message to an ErrorKind.

    The backend reports several distinct failures with a bare 400, so the
    message text is consulted to tell room-full and already-exists apart.

    Args:
        status_code: HTTP status code of the failed response
        message: Error text from the response body, if any

    Returns:
        The matching ErrorKind (UNKNOWN when nothing more specific applies)
    """
    text = (message or "").lower()

    if status_code == 401:
        return ErrorKind.UNAUTHORIZED
    if status_code == 403:
        return ErrorKind.FORBIDDEN
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code in (400, 409):
        if "full" in text:
            return ErrorKind.ROOM_FULL
        if "exists" in text or "in progress" in text:
            return ErrorKind.CONFLICT
        if status_code == 409:
            return ErrorKind.CONFLICT
    return ErrorKind.UNKNOWN


def error_from_payload(
    status_code: int, payload: Optional[Dict[str, Any]]
) -> DirectoryError:
    """Build a DirectoryError from a failed response's status and body."""
    message = error_text(payload)
    return DirectoryError(
        classify_response(status_code, message),
        message=message,
        status_code=status_code,
    )
