"""
Realtime Event Definitions

Events exchanged over the realtime channel. Each travels as a Socket.IO
event named by its type, carrying the camelCase ``data`` payload.
"""

from dataclasses import dataclass
from typing import Any, Dict

from .base import BaseEvent

ROOM_DELETED = "roomDeleted"
JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"

# Dispatched locally by the channel, never sent over the wire
CONNECT = "connect"
DISCONNECT = "disconnect"


@dataclass
class RoomDeletedEvent(BaseEvent):
    """
    Notification that a host deleted a room.

    Attributes:
        room_id: ID of the deleted room
        deleted_by: Email of the user who deleted it
    """

    room_id: str
    deleted_by: str = ""

    event_type = ROOM_DELETED

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "RoomDeletedEvent":
        """Create from event payload."""
        room_id = data.get("roomId")
        if not isinstance(room_id, str) or not room_id:
            raise ValueError(f"roomDeleted event without roomId: {data!r}")
        return cls(room_id=room_id, deleted_by=data.get("deletedBy") or "")


@dataclass
class JoinRoomEvent(BaseEvent):
    """Subscribe this connection to a room's event group."""

    room_id: str
    email: str

    event_type = JOIN_ROOM


@dataclass
class LeaveRoomEvent(BaseEvent):
    """Unsubscribe this connection from a room's event group."""

    room_id: str
    email: str

    event_type = LEAVE_ROOM
