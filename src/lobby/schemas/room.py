"""
Room Schema Definitions

This module defines the Room model as returned by the backend and the
request bodies for room creation, joining, and deletion.
"""

import secrets
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .base import BaseRequest, BaseResponse

# Capacity of a chess room
MAX_MEMBERS = 2

# Game clock used when the creator does not pick one
DEFAULT_TIME_CONTROL_MINUTES = 10

ROOM_ID_LENGTH = 6
ROOM_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    """Generate a short random room id such as ``"ab12cd"``."""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))


class RoomStatus(Enum):
    """Lifecycle states of a room."""

    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


# Allowed status changes; a finished room never goes back to waiting
_TRANSITIONS = {
    RoomStatus.WAITING: {RoomStatus.WAITING, RoomStatus.PLAYING},
    RoomStatus.PLAYING: {RoomStatus.PLAYING, RoomStatus.FINISHED},
    RoomStatus.FINISHED: {RoomStatus.FINISHED},
}


@dataclass
class Room(BaseResponse):
    """
    A shared game room.

    Attributes:
        room_id: Unique identifier for the room
        host_email: Email of the user who created the room
        members: Ordered member emails, at most MAX_MEMBERS entries
        status: Current lifecycle state
        time_control_minutes: Game clock chosen at creation
        created_at: Backend-assigned ISO 8601 creation timestamp
        updated_at: Backend-assigned ISO 8601 update timestamp
    """

    room_id: str
    host_email: str
    members: List[str] = field(default_factory=list)
    status: RoomStatus = RoomStatus.WAITING
    time_control_minutes: int = DEFAULT_TIME_CONTROL_MINUTES
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_full(self) -> bool:
        """Whether no further member can join."""
        return len(self.members) >= MAX_MEMBERS

    @property
    def can_start(self) -> bool:
        """Whether the room is ready to move to playing."""
        return self.status == RoomStatus.WAITING and self.is_full

    def has_member(self, email: str) -> bool:
        return email in self.members

    def is_host(self, email: str) -> bool:
        return bool(email) and email == self.host_email

    def can_transition_to(self, status: RoomStatus) -> bool:
        """Check whether moving to ``status`` keeps the lifecycle monotonic."""
        return status in _TRANSITIONS[self.status]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the backend's camelCase representation."""
        return {
            "roomId": self.room_id,
            "hostEmail": self.host_email,
            "members": list(self.members),
            "status": self.status.value,
            "timeControlMinutes": self.time_control_minutes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "Room":
        """
        Create from a backend room document.

        Unknown keys (database ids, version counters) are ignored.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        try:
            room_id = data["roomId"]
            host_email = data["hostEmail"]
        except KeyError as e:
            raise ValueError(f"Room payload missing field {e}") from e

        if not isinstance(room_id, str) or not room_id:
            raise ValueError(f"Invalid roomId: {room_id!r}")
        if not isinstance(host_email, str):
            raise ValueError(f"Invalid hostEmail: {host_email!r}")

        raw_members = data.get("members") or []
        if not isinstance(raw_members, list):
            raise ValueError(f"Invalid members for room {room_id}")
        members: List[str] = []
        for member in raw_members:
            if isinstance(member, str) and member not in members:
                members.append(member)

        time_control = (
            data.get("timeControlMinutes") or DEFAULT_TIME_CONTROL_MINUTES
        )

        return cls(
            room_id=room_id,
            host_email=host_email,
            members=members,
            status=RoomStatus(data.get("status", RoomStatus.WAITING.value)),
            time_control_minutes=int(time_control),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class CreateRoomRequest(BaseRequest):
    """
    Body of ``POST /rooms``.

    Attributes:
        room_id: Client-generated id for the new room
        host_email: Email of the creating user
        time_control_minutes: Game clock for the room
    """

    room_id: str
    host_email: str
    time_control_minutes: int = DEFAULT_TIME_CONTROL_MINUTES


@dataclass
class JoinRoomRequest(BaseRequest):
    """Body of ``POST /rooms/{roomId}/join``."""

    email: str


@dataclass
class DeleteRoomRequest(BaseRequest):
    """Body (and query string) of ``DELETE /rooms/{roomId}``."""

    email: str
