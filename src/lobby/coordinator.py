"""
Room Lifecycle Coordinator

This module keeps one client's view of the lobby consistent while REST
responses, locally initiated actions, and realtime notifications arrive in
any order.

Architecture:
    - All state lives on the coordinator and is only changed between
      awaits on one event loop, so no locks are needed
    - Realtime handlers only enqueue; a single consumer applies inbound
      events in arrival order
    - Every user action returns an ActionOutcome; failures are reported,
      never raised
    - Collaborators (directory client, realtime channel, user identity) are
      passed in at construction

Ordering:
    Every refresh notes a token when it starts, and every completed local
    mutation is recorded with the token at completion. When a snapshot
    arrives, rooms with an outstanding pending action or with a local
    write newer than the refresh keep their local value; everything else
    takes the snapshot. A refresh issued after an operation completes is
    therefore authoritative, while a slow refresh issued before it cannot
    resurrect a deleted room. Create and join clear their pending entry as
    soon as the REST call returns and then refresh; if that refresh no
    longer lists the room, the action reports NotFound instead of
    navigating.

Usage:
    coordinator = RoomLifecycleCoordinator(directory, channel, "me@x.com")
    coordinator.set_on_navigate(lambda signal: open_game(signal.room_id))
    await coordinator.mount()
    await coordinator.refresh()
    await coordinator.join_room("ab12cd")
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from .directory import RoomDirectoryClient
from .errors import DEFAULT_MESSAGES, DirectoryError, ErrorKind
from .realtime import RealtimeChannel, Subscription
from .schemas import (
    CONNECT,
    DEFAULT_TIME_CONTROL_MINUTES,
    ROOM_DELETED,
    JoinRoomEvent,
    LeaveRoomEvent,
    Room,
    RoomDeletedEvent,
    generate_room_id,
)

logger = logging.getLogger(__name__)


class ListStatus(Enum):
    """Status of the room list fetch."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


class ActionKind(Enum):
    """
    User-facing operations.

    Only CREATE, JOIN and DELETE register pending actions.
    """

    CREATE = "create"
    JOIN = "join"
    DELETE = "delete"
    ENTER = "enter"
    REFRESH = "refresh"


@dataclass(frozen=True)
class PendingAction:
    """
    An in-flight user operation against one room.

    Attributes:
        kind: Which operation is running
        room_id: Target room
        token: Position in the coordinator's request order
    """

    kind: ActionKind
    room_id: str
    token: int


@dataclass(frozen=True)
class LocalWrite:
    """A completed local change to one room; room is None for removals."""

    room_id: str
    token: int
    room: Optional[Room]


@dataclass(frozen=True)
class NavigationSignal:
    """Tells the presentation layer to open the game for a room."""

    room_id: str
    action: ActionKind


@dataclass
class ActionOutcome:
    """
    Result of a user-facing operation.

    Attributes:
        ok: Whether the operation reached its desired end state
        action: Which operation produced this outcome
        room_id: Target room, if any
        error_kind: Failure kind when ok is False
        message: User-facing failure message
        navigate_to: Room to open after a successful create/join/enter
    """

    ok: bool
    action: ActionKind
    room_id: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    navigate_to: Optional[str] = None


@dataclass(frozen=True)
class Unarmed:
    """No deletion awaiting confirmation."""


@dataclass(frozen=True)
class ArmedFor:
    """A deletion of room_id awaits confirmation."""

    room_id: str


UNARMED = Unarmed()


class DeleteConfirmation:
    """Two-state gate between asking to delete a room and doing it."""

    def __init__(self):
        self.state: Union[Unarmed, ArmedFor] = UNARMED

    @property
    def armed_room(self) -> Optional[str]:
        if isinstance(self.state, ArmedFor):
            return self.state.room_id
        return None

    def arm(self, room_id: str) -> None:
        self.state = ArmedFor(room_id)

    def disarm(self) -> None:
        self.state = UNARMED

    def disarm_if(self, room_id: str) -> bool:
        """Disarm when armed for ``room_id``; returns whether it was."""
        if self.armed_room == room_id:
            self.state = UNARMED
            return True
        return False


class RoomLifecycleCoordinator:
    """
    Reconciles REST state, local actions and realtime events.

    Attributes:
        rooms: Local view of the room list, keyed by room id
        pending_actions: In-flight operations, at most one per room
        list_status: Status of the room list fetch
        confirmation: Delete confirmation gate
        current_room: Room the user navigated into, if any
        user_email: Identity used when an operation gets no requester
    """

    def __init__(
        self,
        directory: RoomDirectoryClient,
        channel: RealtimeChannel,
        user_email: Optional[str] = None,
        room_id_factory: Callable[[], str] = generate_room_id,
    ):
        """
        Initialize the coordinator.

        Args:
            directory: REST room directory client
            channel: Realtime channel for deletion fan-out
            user_email: Email of the signed-in user
            room_id_factory: Generates ids for new rooms
        """
        self._directory = directory
        self._channel = channel
        self._room_id_factory = room_id_factory
        self.user_email = user_email

        self.rooms: Dict[str, Room] = {}
        self.pending_actions: Dict[str, PendingAction] = {}
        self.list_status = ListStatus.IDLE
        self.confirmation = DeleteConfirmation()
        self.current_room: Optional[str] = None

        self._tokens = itertools.count(1)
        self._local_writes: Dict[str, LocalWrite] = {}
        self._applied_refresh_token = 0
        self._refreshes_in_flight = 0
        self._followed: Set[str] = set()

        self._inbox: asyncio.Queue = asyncio.Queue()
        self._subscriptions: List[Subscription] = []
        self._consumer_task: Optional[asyncio.Task] = None

        # Callbacks for presentation layer integration
        self._on_state_changed: Optional[
            Callable[["RoomLifecycleCoordinator"], None]
        ] = None
        self._on_navigate: Optional[Callable[[NavigationSignal], None]] = None
        self._on_error: Optional[Callable[[ActionOutcome], None]] = None
        self._on_room_closed: Optional[
            Callable[[RoomDeletedEvent], None]
        ] = None

    def set_on_state_changed(
        self, callback: Callable[["RoomLifecycleCoordinator"], None]
    ) -> None:
        """Register callback fired after any change to observable state."""
        self._on_state_changed = callback

    def set_on_navigate(
        self, callback: Callable[[NavigationSignal], None]
    ) -> None:
        """Register callback fired when a room should be opened."""
        self._on_navigate = callback

    def set_on_error(self, callback: Callable[[ActionOutcome], None]) -> None:
        """Register callback fired for every failed user-facing operation."""
        self._on_error = callback

    def set_on_room_closed(
        self, callback: Callable[[RoomDeletedEvent], None]
    ) -> None:
        """
        Register callback fired when the current room is deleted remotely.

        Args:
            callback: Function that receives the deletion event
        """
        self._on_room_closed = callback

    @property
    def directory(self) -> RoomDirectoryClient:
        return self._directory

    @property
    def channel(self) -> RealtimeChannel:
        return self._channel

    @property
    def room_list(self) -> List[Room]:
        """Rooms in snapshot order."""
        return list(self.rooms.values())

    # ===== Mount / inbound queue =====

    async def mount(self) -> None:
        """Subscribe to realtime events and start the inbound consumer."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self._channel.subscribe(ROOM_DELETED, self._enqueue(ROOM_DELETED)),
            self._channel.subscribe(CONNECT, self._enqueue(CONNECT)),
        ]
        self._consumer_task = asyncio.create_task(self._consume_inbox())
        logger.info("Coordinator mounted")

    async def unmount(self) -> None:
        """Unsubscribe, stop the consumer and discard pending actions."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

        if self._consumer_task is not None:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None

        if self.pending_actions:
            logger.info(
                f"Discarding {len(self.pending_actions)} pending actions"
            )
        self.pending_actions.clear()
        logger.info("Coordinator unmounted")

    def _enqueue(self, event: str) -> Callable[[Dict[str, Any]], None]:
        def handler(payload: Dict[str, Any]) -> None:
            self._inbox.put_nowait((event, payload))

        return handler

    async def _consume_inbox(self) -> None:
        while True:
            event, payload = await self._inbox.get()
            try:
                await self._handle_inbound(event, payload)
            except Exception:
                logger.exception(f"Error while handling inbound '{event}'")
            finally:
                self._inbox.task_done()

    async def process_pending_events(self) -> int:
        """
        Apply every queued inbound event now.

        Returns:
            Number of events processed
        """
        processed = 0
        while not self._inbox.empty():
            event, payload = self._inbox.get_nowait()
            try:
                await self._handle_inbound(event, payload)
            finally:
                self._inbox.task_done()
            processed += 1
        return processed

    async def _handle_inbound(
        self, event: str, payload: Dict[str, Any]
    ) -> None:
        if event == ROOM_DELETED:
            self.on_remote_deletion(payload)
        elif event == CONNECT:
            refollow = bool(self._followed)
            self._followed.clear()
            await self._resubscribe_current_room()
            if refollow:
                await self.follow_member_rooms()
        else:
            logger.debug(f"Unhandled inbound event: {event}")

    async def _resubscribe_current_room(self) -> None:
        requester = self._requester(None)
        if self.current_room and requester:
            logger.info(f"Rejoining realtime group for '{self.current_room}'")
            await self._channel.emit_event(
                JoinRoomEvent(self.current_room, requester)
            )

    async def follow_member_rooms(self) -> List[str]:
        """
        Join the realtime group of every listed room the user belongs to.

        Deletions are fanned out per room group. Rooms already followed
        and the current room are skipped; after a reconnect the followed
        rooms are joined again.

        Returns:
            Ids of the rooms newly followed
        """
        requester = self._requester(None)
        if not requester:
            return []
        followed = []
        for room in self.room_list:
            room_id = room.room_id
            if room_id in self._followed or room_id == self.current_room:
                continue
            if not room.has_member(requester):
                continue
            event = JoinRoomEvent(room_id, requester)
            if await self._channel.emit_event(event):
                self._followed.add(room_id)
                followed.append(room_id)
        if followed:
            logger.info(f"Following rooms {followed}")
        return followed

    # ===== Bookkeeping =====

    def _next_token(self) -> int:
        return next(self._tokens)

    def _requester(self, requester_email: Optional[str]) -> str:
        email = self.user_email if requester_email is None else requester_email
        return (email or "").strip()

    def _register(self, kind: ActionKind, room_id: str) -> PendingAction:
        pending = PendingAction(kind, room_id, self._next_token())
        self.pending_actions[room_id] = pending
        logger.debug(f"Pending {kind.value} on '{room_id}' ({pending.token})")
        return pending

    def _clear(self, pending: PendingAction) -> None:
        # Only clear our own entry; unmount may have discarded it already
        if self.pending_actions.get(pending.room_id) == pending:
            del self.pending_actions[pending.room_id]

    def _record_write(self, room_id: str, room: Optional[Room]) -> None:
        self._local_writes[room_id] = LocalWrite(
            room_id, self._next_token(), room
        )

    def _store_room(self, room: Room) -> None:
        self._record_write(room.room_id, room)
        self.rooms[room.room_id] = room

    def _remove_room(self, room_id: str) -> bool:
        """Remove a room locally and leave a record against stale refreshes."""
        self._record_write(room_id, None)
        removed = self.rooms.pop(room_id, None) is not None
        self._followed.discard(room_id)
        if self.confirmation.disarm_if(room_id):
            logger.info(f"Dropped delete confirmation for removed '{room_id}'")
        return removed

    def _notify(self) -> None:
        if self._on_state_changed:
            self._on_state_changed(self)

    def _reject(
        self,
        action: ActionKind,
        room_id: Optional[str],
        kind: ErrorKind,
        message: Optional[str] = None,
    ) -> ActionOutcome:
        """Report a failure detected locally, before any network call."""
        outcome = ActionOutcome(
            ok=False,
            action=action,
            room_id=room_id,
            error_kind=kind,
            message=message or DEFAULT_MESSAGES[kind],
        )
        logger.warning(
            f"Rejected {action.value} on {room_id!r}: {outcome.message}"
        )
        if self._on_error:
            self._on_error(outcome)
        return outcome

    def _fail(
        self, action: ActionKind, room_id: Optional[str], error: DirectoryError
    ) -> ActionOutcome:
        outcome = ActionOutcome(
            ok=False,
            action=action,
            room_id=room_id,
            error_kind=error.kind,
            message=error.user_message,
        )
        logger.error(
            f"{action.value} on {room_id!r} failed "
            f"({error.kind.value}): {outcome.message}"
        )
        if self._on_error:
            self._on_error(outcome)
        self._notify()
        return outcome

    async def _navigate(
        self, action: ActionKind, room_id: str, requester: str
    ) -> ActionOutcome:
        self.current_room = room_id
        await self._channel.emit_event(JoinRoomEvent(room_id, requester))
        self._notify()

        signal = NavigationSignal(room_id, action)
        logger.info(f"Navigating to room '{room_id}'")
        if self._on_navigate:
            self._on_navigate(signal)
        return ActionOutcome(
            ok=True, action=action, room_id=room_id, navigate_to=room_id
        )

    async def _refresh_and_navigate(
        self, action: ActionKind, room_id: str, requester: str
    ) -> ActionOutcome:
        """Refresh, then navigate unless the room is gone by now."""
        await self.refresh()
        if room_id not in self.rooms:
            return self._fail(
                action,
                room_id,
                DirectoryError(ErrorKind.NOT_FOUND, "Room was deleted"),
            )
        return await self._navigate(action, room_id, requester)

    # ===== Refresh =====

    async def refresh(self) -> bool:
        """
        Re-fetch the room list and reconcile it with local state.

        On failure the previous snapshot stays in place.

        Returns:
            True if a snapshot was fetched, False on failure
        """
        started = self._next_token()
        self._refreshes_in_flight += 1
        self.list_status = ListStatus.LOADING
        self._notify()

        try:
            snapshot = await self._directory.list_rooms()
        except DirectoryError as e:
            self.list_status = ListStatus.ERROR
            self._fail(ActionKind.REFRESH, None, e)
            return False
        finally:
            self._refreshes_in_flight -= 1

        if started < self._applied_refresh_token:
            logger.debug(f"Discarding snapshot {started}: a newer one applied")
        else:
            self._apply_snapshot(snapshot, started)
            self._applied_refresh_token = started

        self.list_status = (
            ListStatus.LOADING
            if self._refreshes_in_flight
            else ListStatus.IDLE
        )
        self._notify()
        return True

    def _apply_snapshot(self, snapshot: List[Room], started: int) -> None:
        fresh = {room.room_id: room for room in snapshot}

        for room_id in self.pending_actions:
            if room_id in self.rooms:
                fresh[room_id] = self.rooms[room_id]
            else:
                fresh.pop(room_id, None)

        for room_id, write in list(self._local_writes.items()):
            if room_id in self.pending_actions:
                continue
            if write.token > started:
                if write.room is None:
                    fresh.pop(room_id, None)
                else:
                    fresh[room_id] = write.room
            else:
                del self._local_writes[room_id]

        for room_id in set(self.rooms) - set(fresh):
            self.confirmation.disarm_if(room_id)
            self._followed.discard(room_id)

        self.rooms = fresh
        logger.info(f"Room list now has {len(self.rooms)} rooms")

    # ===== Create / join / enter =====

    async def create_room(
        self,
        requester_email: Optional[str] = None,
        time_control_minutes: int = DEFAULT_TIME_CONTROL_MINUTES,
    ) -> ActionOutcome:
        """
        Create a room hosted by the requester and navigate into it.

        A create collision is reported as CONFLICT; a new id is not tried
        automatically.
        """
        requester = self._requester(requester_email)
        if not requester:
            return self._reject(
                ActionKind.CREATE,
                None,
                ErrorKind.UNAUTHORIZED,
                "Please log in again to create a room",
            )

        room_id = self._room_id_factory()
        if room_id in self.pending_actions:
            return self._reject(ActionKind.CREATE, room_id, ErrorKind.CONFLICT)

        pending = self._register(ActionKind.CREATE, room_id)
        try:
            room = await self._directory.create_room(
                room_id, requester, time_control_minutes
            )
        except DirectoryError as e:
            return self._fail(ActionKind.CREATE, room_id, e)
        finally:
            self._clear(pending)

        logger.info(f"Room '{room.room_id}' created by {requester}")
        self._store_room(room)
        self._notify()
        return await self._refresh_and_navigate(
            ActionKind.CREATE, room.room_id, requester
        )

    async def join_room(
        self, room_id: str, requester_email: Optional[str] = None
    ) -> ActionOutcome:
        """
        Join a room and navigate into it.

        A second join on a room whose first join has not finished is
        rejected without a network call. ROOM_FULL and NOT_FOUND are
        reported, not retried.
        """
        room_id = (room_id or "").strip()
        if not room_id:
            return self._reject(
                ActionKind.JOIN, None, ErrorKind.NOT_FOUND, "Room id required"
            )
        if room_id in self.pending_actions:
            return self._reject(
                ActionKind.JOIN,
                room_id,
                ErrorKind.CONFLICT,
                "Another action on this room is in progress",
            )

        requester = self._requester(requester_email)
        if not requester:
            return self._reject(
                ActionKind.JOIN,
                room_id,
                ErrorKind.UNAUTHORIZED,
                "Please log in again to join a room",
            )

        pending = self._register(ActionKind.JOIN, room_id)
        try:
            room = await self._directory.join_room(room_id, requester)
        except DirectoryError as e:
            return self._fail(ActionKind.JOIN, room_id, e)
        finally:
            self._clear(pending)

        logger.info(f"{requester} joined room '{room_id}'")
        self._store_room(room)
        self._notify()
        return await self._refresh_and_navigate(
            ActionKind.JOIN, room_id, requester
        )

    async def enter_room(
        self, room_id: str, requester_email: Optional[str] = None
    ) -> ActionOutcome:
        """Navigate into a known room the requester is already a member of."""
        requester = self._requester(requester_email)
        room = self.rooms.get((room_id or "").strip())
        if room is None:
            return self._reject(ActionKind.ENTER, room_id, ErrorKind.NOT_FOUND)
        if not requester or not room.has_member(requester):
            return self._reject(
                ActionKind.ENTER,
                room_id,
                ErrorKind.FORBIDDEN,
                "Join the room before entering it",
            )
        return await self._navigate(ActionKind.ENTER, room.room_id, requester)

    async def leave_room(self, requester_email: Optional[str] = None) -> bool:
        """Leave the current room's realtime group."""
        if self.current_room is None:
            return False
        room_id, self.current_room = self.current_room, None
        requester = self._requester(requester_email)
        if requester:
            await self._channel.emit_event(LeaveRoomEvent(room_id, requester))
        logger.info(f"Left room '{room_id}'")
        self._notify()
        return True

    # ===== Delete =====

    def request_delete(self, room_id: str) -> bool:
        """
        Arm the delete confirmation for a room.

        Nothing is sent until confirm_delete() is called. Arming again
        replaces the previous target.
        """
        room_id = (room_id or "").strip()
        if not room_id:
            return False
        self.confirmation.arm(room_id)
        logger.info(f"Delete of '{room_id}' awaiting confirmation")
        self._notify()
        return True

    def cancel_delete(self) -> None:
        if self.confirmation.armed_room is not None:
            logger.info(
                f"Delete of '{self.confirmation.armed_room}' cancelled"
            )
        self.confirmation.disarm()
        self._notify()

    async def confirm_delete(
        self, requester_email: Optional[str] = None
    ) -> ActionOutcome:
        """
        Delete the room the confirmation is armed for.

        The room is removed locally as soon as the backend confirms, and a
        realtime notification is sent so other clients refresh sooner. A
        room that is already gone counts as deleted.
        """
        room_id = self.confirmation.armed_room
        if room_id is None:
            return self._reject(
                ActionKind.DELETE,
                None,
                ErrorKind.UNKNOWN,
                "No room deletion to confirm",
            )
        self.confirmation.disarm()
        self._notify()

        requester = self._requester(requester_email)
        if not requester:
            return self._reject(
                ActionKind.DELETE,
                room_id,
                ErrorKind.UNAUTHORIZED,
                "Please log in again to delete a room",
            )
        if room_id in self.pending_actions:
            return self._reject(
                ActionKind.DELETE,
                room_id,
                ErrorKind.CONFLICT,
                "Another action on this room is in progress",
            )

        pending = self._register(ActionKind.DELETE, room_id)
        try:
            deleted = True
            try:
                await self._directory.delete_room(room_id, requester)
            except DirectoryError as e:
                if e.kind != ErrorKind.NOT_FOUND:
                    return self._fail(ActionKind.DELETE, room_id, e)
                logger.info(f"Room '{room_id}' was already deleted")
                deleted = False

            self._remove_room(room_id)
            if self.current_room == room_id:
                self.current_room = None
            self._notify()

            if deleted:
                logger.info(f"Room '{room_id}' deleted by {requester}")
                await self._channel.emit_event(
                    RoomDeletedEvent(room_id, requester)
                )
            return ActionOutcome(
                ok=True, action=ActionKind.DELETE, room_id=room_id
            )
        finally:
            self._clear(pending)

    # ===== Realtime =====

    def on_remote_deletion(
        self, event: Union[RoomDeletedEvent, Dict[str, Any]]
    ) -> bool:
        """
        Apply a deletion announced by another client.

        Returns:
            True if a room was removed, False if it was already absent
        """
        if not isinstance(event, RoomDeletedEvent):
            try:
                event = RoomDeletedEvent.from_dict(event)
            except ValueError as e:
                logger.warning(f"Ignoring malformed roomDeleted event: {e}")
                return False

        if event.room_id not in self.rooms:
            logger.debug(f"Room '{event.room_id}' already absent")
            if self.confirmation.disarm_if(event.room_id):
                self._notify()
            return False

        self._remove_room(event.room_id)
        logger.info(
            f"Room '{event.room_id}' deleted remotely by "
            f"{event.deleted_by or 'unknown'}"
        )

        if self.current_room == event.room_id:
            self.current_room = None
            if self._on_room_closed:
                self._on_room_closed(event)

        self._notify()
        return True
