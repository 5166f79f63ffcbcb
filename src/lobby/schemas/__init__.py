"""
Schemas Package

This package contains the data model and wire schemas of the lobby client:
rooms and REST request bodies in `room`, realtime events in `events`.

The base classes (BaseRequest, BaseResponse, BaseEvent) hold the shared
serialization code and the snake_case to camelCase conversion.
"""

from .base import BaseRequest, BaseResponse, BaseEvent
from .room import (
    MAX_MEMBERS,
    DEFAULT_TIME_CONTROL_MINUTES,
    Room,
    RoomStatus,
    CreateRoomRequest,
    JoinRoomRequest,
    DeleteRoomRequest,
    generate_room_id,
)
from .events import (
    ROOM_DELETED,
    JOIN_ROOM,
    LEAVE_ROOM,
    CONNECT,
    DISCONNECT,
    RoomDeletedEvent,
    JoinRoomEvent,
    LeaveRoomEvent,
)

__all__ = [
    # Base classes
    "BaseRequest",
    "BaseResponse",
    "BaseEvent",
    # Room schemas
    "MAX_MEMBERS",
    "DEFAULT_TIME_CONTROL_MINUTES",
    "Room",
    "RoomStatus",
    "CreateRoomRequest",
    "JoinRoomRequest",
    "DeleteRoomRequest",
    "generate_room_id",
    # Realtime events
    "ROOM_DELETED",
    "JOIN_ROOM",
    "LEAVE_ROOM",
    "CONNECT",
    "DISCONNECT",
    "RoomDeletedEvent",
    "JoinRoomEvent",
    "LeaveRoomEvent",
]
