"""
Realtime Channel

This module provides a persistent, auto-reconnecting publish/subscribe
connection to the backend's Socket.IO endpoint. It is used to fan room
deletions out to the other clients in a room.

Message Format:
    Socket.IO events carry an event name and a JSON object payload:
        roomDeleted  {"roomId": ..., "deletedBy": ...}
        joinRoom     {"roomId": ..., "email": ...}
        leaveRoom    {"roomId": ..., "email": ...}
    The server fans ``roomDeleted`` out to the sockets that joined the
    room's group with ``joinRoom``.

Architecture:
    - A python-socketio AsyncClient owns the connection and reconnects on
      its own after an established connection drops
    - One background task performs the first connect, retrying with
      capped exponential backoff until the server is reachable
    - Subscribers register per event name; ``connect`` and ``disconnect``
      are dispatched locally when the connection state changes
    - ``emit`` is best-effort: while disconnected, events are dropped
    - Supports dependency injection for the client (for testability)
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import socketio
from socketio.exceptions import SocketIOError

from .schemas import CONNECT, DISCONNECT, BaseEvent

logger = logging.getLogger(__name__)

DEFAULT_SOCKETIO_PATH = "/socket.io"
DEFAULT_RECONNECT_DELAY = 1.0
DEFAULT_MAX_RECONNECT_DELAY = 30.0
DEFAULT_CONNECT_TIMEOUT = 20.0

TRANSPORTS = ["websocket", "polling"]

Handler = Callable[[Dict[str, Any]], Any]


class ConnectionState(Enum):
    """Connection state of the realtime channel."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to stop."""

    def __init__(self, channel: "RealtimeChannel", event: str, handler):
        self._channel = channel
        self.event = event
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._channel._remove_handler(self.event, self.handler)


class RealtimeChannel:
    """
    Auto-reconnecting Socket.IO pub/sub connection.

    Attributes:
        url: Server origin (e.g., http://localhost:5000)
        socketio_path: Socket.IO endpoint path on the server
        connection_state: Current ConnectionState
    """

    def __init__(
        self,
        url: str,
        socketio_path: str = DEFAULT_SOCKETIO_PATH,
        client_factory: Optional[Callable[[], Any]] = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_delay: float = DEFAULT_MAX_RECONNECT_DELAY,
    ):
        """
        Initialize the channel.

        Args:
            url: Server origin to connect to
            socketio_path: Socket.IO endpoint path
            client_factory: Optional factory returning a Socket.IO client
                            (for dependency injection/testing)
            reconnect_delay: Initial delay in seconds before reconnecting
            max_reconnect_delay: Upper bound for the backoff delay
        """
        self.url = url
        self.socketio_path = socketio_path
        self.connection_state = ConnectionState.DISCONNECTED
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self._handlers: Dict[str, List[Handler]] = {}
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._connected_event = asyncio.Event()

        factory = client_factory or self._default_client
        self._client = factory()
        self._register_client_handlers()

        logger.info(f"RealtimeChannel initialized for {url}")

    def _default_client(self):
        return socketio.AsyncClient(
            reconnection=True,
            reconnection_delay=self.reconnect_delay,
            reconnection_delay_max=self.max_reconnect_delay,
            logger=False,
        )

    def _register_client_handlers(self) -> None:
        self._client.on(CONNECT, self._on_connect)
        self._client.on(DISCONNECT, self._on_disconnect)
        for event in self._handlers:
            self._client.on(event, self._receiver(event))

    @property
    def is_connected(self) -> bool:
        """Check if the connection is currently open."""
        return self.connection_state == ConnectionState.CONNECTED

    def start(self) -> None:
        """Start the background connect loop."""
        if self._task is not None and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop reconnecting and close the connection."""
        self._running = False
        if getattr(self._client, "connected", False):
            try:
                await self._client.disconnect()
            except SocketIOError as e:
                logger.debug(f"Error while disconnecting: {e}")
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._mark_disconnected()

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the channel is connected.

        Returns:
            True if connected, False if the timeout expired first
        """
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        """
        Register a handler for an event name.

        Handlers receive the event's payload and may be plain functions or
        coroutines.

        Returns:
            Subscription whose unsubscribe() removes the handler
        """
        if event not in self._handlers and event not in (CONNECT, DISCONNECT):
            self._client.on(event, self._receiver(event))
        self._handlers.setdefault(event, []).append(handler)
        return Subscription(self, event, handler)

    def _remove_handler(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: str, payload: Dict[str, Any]) -> bool:
        """
        Send an event, fire-and-forget.

        Returns:
            True if the event was handed to the client, False if it was
            dropped because the channel is disconnected or the send failed
        """
        if not self.is_connected:
            logger.debug(f"Dropping '{event}' emit: channel disconnected")
            return False

        try:
            await self._client.emit(event, payload)
        except SocketIOError as e:
            logger.warning(f"Failed to emit '{event}': {e}")
            return False
        logger.debug(f"Emitted '{event}': {payload}")
        return True

    async def emit_event(self, event: BaseEvent) -> bool:
        """Send a schema event object."""
        return await self.emit(event.event_type, event.payload())

    async def _run(self) -> None:
        """Connect, wait until the client gives up, then connect again."""
        delay = self.reconnect_delay
        while self._running:
            try:
                logger.info(f"Connecting to {self.url}...")
                await self._client.connect(
                    self.url,
                    socketio_path=self.socketio_path,
                    transports=TRANSPORTS,
                    wait_timeout=DEFAULT_CONNECT_TIMEOUT,
                )
                delay = self.reconnect_delay
                await self._client.wait()
                logger.warning("Realtime connection closed")
            except SocketIOError as e:
                logger.warning(f"Realtime connection failed: {e}")
            except Exception:
                logger.exception("Unexpected error in realtime loop")

            if self._running:
                logger.info(f"Reconnecting in {delay:.1f}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_reconnect_delay)

    async def _on_connect(self) -> None:
        self.connection_state = ConnectionState.CONNECTED
        self._connected_event.set()
        logger.info("Realtime channel connected")
        await self._dispatch(CONNECT, {})

    async def _on_disconnect(self, *args) -> None:
        await self._mark_disconnected()

    async def _mark_disconnected(self) -> None:
        if self.connection_state == ConnectionState.DISCONNECTED:
            return
        self.connection_state = ConnectionState.DISCONNECTED
        self._connected_event.clear()
        logger.info("Realtime channel disconnected")
        await self._dispatch(DISCONNECT, {})

    def _receiver(self, event: str):
        async def receive(data=None, *args) -> None:
            if not isinstance(data, dict):
                logger.warning(f"Ignoring '{event}' with payload {data!r}")
                return
            await self._dispatch(event, data)

        return receive

    async def _dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        handlers = list(self._handlers.get(event, []))
        if not handlers:
            logger.debug(f"Unhandled event type: {event}")
            return

        for handler in handlers:
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler for '{event}' failed")

    def _set_test_mode(self, mock_client: object = None) -> None:
        """
        Mark the channel connected with a mock client.

        This is a helper method for testing that allows bypassing
        actual Socket.IO connections.

        Raises:
            ValueError: If mock_client is not provided
        """
        if mock_client is None:
            raise ValueError("_set_test_mode requires a mock_client object")
        self._client = mock_client
        self._register_client_handlers()
        self.connection_state = ConnectionState.CONNECTED
        self._connected_event.set()
