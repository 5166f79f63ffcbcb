"""
Lobby Package

This package provides the client side of the chess room lobby: resolving
the backend endpoint, the REST room directory client, the realtime channel
and the room lifecycle coordinator that reconciles them.

Schemas are organized in the `schemas` subpackage:
    - room: Room model and REST request bodies
    - events: Realtime events
"""

from .coordinator import (
    ActionKind,
    ActionOutcome,
    ArmedFor,
    DeleteConfirmation,
    ListStatus,
    NavigationSignal,
    PendingAction,
    RoomLifecycleCoordinator,
    Unarmed,
)
from .directory import RoomDirectoryClient
from .endpoint import (
    EndpointResolver,
    JsonFileStore,
    MemoryStore,
    Platform,
    normalize_url,
)
from .errors import DirectoryError, ErrorKind
from .realtime import ConnectionState, RealtimeChannel, Subscription
from .schemas import (
    MAX_MEMBERS,
    Room,
    RoomStatus,
    CreateRoomRequest,
    JoinRoomRequest,
    DeleteRoomRequest,
    RoomDeletedEvent,
    JoinRoomEvent,
    LeaveRoomEvent,
    generate_room_id,
)

__all__ = [
    # Coordinator
    "ActionKind",
    "ActionOutcome",
    "ArmedFor",
    "DeleteConfirmation",
    "ListStatus",
    "NavigationSignal",
    "PendingAction",
    "RoomLifecycleCoordinator",
    "Unarmed",
    # Clients
    "RoomDirectoryClient",
    "ConnectionState",
    "RealtimeChannel",
    "Subscription",
    # Endpoint
    "EndpointResolver",
    "JsonFileStore",
    "MemoryStore",
    "Platform",
    "normalize_url",
    # Errors
    "DirectoryError",
    "ErrorKind",
    # Schemas
    "MAX_MEMBERS",
    "Room",
    "RoomStatus",
    "CreateRoomRequest",
    "JoinRoomRequest",
    "DeleteRoomRequest",
    "RoomDeletedEvent",
    "JoinRoomEvent",
    "LeaveRoomEvent",
    "generate_room_id",
]
