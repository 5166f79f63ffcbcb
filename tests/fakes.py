"""
Test doubles shared by the lobby tests.

FakeDirectory behaves like the backend room routes, in memory. Gates
(asyncio.Event) let a test hold a call open to force an interleaving.
"""

import asyncio
import copy
from typing import Callable, Dict, List, Optional

from socketio import exceptions

from lobby import DirectoryError, ErrorKind, Room, RoomStatus


class FakeSocketClient:
    """
    Stand-in for socketio.AsyncClient.

    Records emitted events and lets a test deliver server events to the
    handlers registered with on().
    """

    def __init__(self, fail_connects=0, error=None):
        self.handlers: Dict[str, Callable] = {}
        self.emitted: List[tuple] = []
        self.connect_calls: List[dict] = []
        self.connected = False
        self.fail_connects = fail_connects
        self.error = error or exceptions.ConnectionError("refused")
        self._closed_event = asyncio.Event()

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        self.connect_calls.append(dict(kwargs, url=url))
        if self.fail_connects:
            self.fail_connects -= 1
            raise self.error
        self.connected = True
        self._closed_event.clear()
        await self._trigger("connect")

    async def wait(self):
        await self._closed_event.wait()

    async def emit(self, event, data=None):
        if not self.connected:
            raise exceptions.BadNamespaceError(
                "/ is not a connected namespace."
            )
        self.emitted.append((event, data))

    async def disconnect(self):
        self.connected = False
        self._closed_event.set()
        await self._trigger("disconnect")

    async def drop(self):
        """Simulate the server closing the connection."""
        await self.disconnect()

    async def deliver(self, event, data):
        """Deliver an event from the server."""
        await self._trigger(event, data)

    async def _trigger(self, event, *args):
        handler = self.handlers.get(event)
        if handler is not None:
            await handler(*args)


def make_room(room_id, host, members=None, status=RoomStatus.WAITING):
    return Room(
        room_id=room_id,
        host_email=host,
        members=list(members if members is not None else [host]),
        status=status,
        created_at="2026-10-19T10:00:00.000Z",
        updated_at="2026-10-19T10:00:00.000Z",
    )


class FakeDirectory:
    """In-memory stand-in for RoomDirectoryClient."""

    def __init__(self, rooms=()):
        self.rooms: Dict[str, Room] = {room.room_id: room for room in rooms}
        self.calls: List[tuple] = []
        self.list_gates: List[asyncio.Event] = []
        self.join_gate: Optional[asyncio.Event] = None
        self.delete_gate: Optional[asyncio.Event] = None
        self.fail_next: Dict[str, DirectoryError] = {}
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_next.pop(operation, None)
        if error is not None:
            raise error

    async def list_rooms(self):
        self.calls.append(("list",))
        # The response reflects the server state when the request arrived
        snapshot = [copy.deepcopy(room) for room in self.rooms.values()]
        gate = self.list_gates.pop(0) if self.list_gates else None
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        self._maybe_fail("list")
        return snapshot

    async def get_room(self, room_id):
        self.calls.append(("get", room_id))
        await asyncio.sleep(0)
        if room_id not in self.rooms:
            raise DirectoryError(ErrorKind.NOT_FOUND, "Room not found", 404)
        return copy.deepcopy(self.rooms[room_id])

    async def create_room(self, room_id, host_email, time_control_minutes=10):
        self.calls.append(("create", room_id, host_email))
        await asyncio.sleep(0)
        self._maybe_fail("create")
        if not host_email:
            raise DirectoryError(ErrorKind.UNAUTHORIZED)
        if room_id in self.rooms:
            raise DirectoryError(
                ErrorKind.CONFLICT, "Room already exists", 400
            )
        room = make_room(room_id, host_email)
        room.time_control_minutes = time_control_minutes
        self.rooms[room_id] = room
        return copy.deepcopy(room)

    async def join_room(self, room_id, member_email):
        self.calls.append(("join", room_id, member_email))
        if self.join_gate is not None:
            await self.join_gate.wait()
        await asyncio.sleep(0)
        self._maybe_fail("join")
        room = self.rooms.get(room_id)
        if room is None:
            raise DirectoryError(ErrorKind.NOT_FOUND, "Room not found", 404)
        if member_email in room.members:
            return copy.deepcopy(room)
        if room.is_full:
            raise DirectoryError(ErrorKind.ROOM_FULL, "Room is full", 400)
        room.members.append(member_email)
        return copy.deepcopy(room)

    async def delete_room(self, room_id, requester_email):
        self.calls.append(("delete", room_id, requester_email))
        if self.delete_gate is not None:
            await self.delete_gate.wait()
        await asyncio.sleep(0)
        self._maybe_fail("delete")
        room = self.rooms.get(room_id)
        if room is None:
            raise DirectoryError(ErrorKind.NOT_FOUND, "Room not found", 404)
        if room.host_email != requester_email:
            raise DirectoryError(
                ErrorKind.FORBIDDEN, "Only room host can delete the room", 403
            )
        del self.rooms[room_id]


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Poll until predicate() is true or fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)
