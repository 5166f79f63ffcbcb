"""
Room Directory Client

This module wraps the backend's REST room endpoints: list, get, create,
join, and delete. Every failure is raised as a DirectoryError carrying a
normalized ErrorKind; nothing is retried.

Architecture:
    - Blocking ``requests`` calls run in a worker thread so the caller's
      event loop keeps processing realtime events meanwhile
    - The base URL is read from a provider on every call, so a changed
      endpoint applies to the next request
    - The HTTP session is injectable (for testing)
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from .errors import (
    DirectoryError,
    ErrorKind,
    error_from_payload,
    error_text,
    is_already_member,
)
from .schemas import (
    DEFAULT_TIME_CONTROL_MINUTES,
    CreateRoomRequest,
    DeleteRoomRequest,
    JoinRoomRequest,
    Room,
)

logger = logging.getLogger(__name__)

# Seconds before the transport gives up on a request
DEFAULT_HTTP_TIMEOUT = 20.0


def _room_path(room_id: str) -> str:
    return f"/rooms/{quote(room_id, safe='')}"


def _require_email(email: Optional[str]) -> str:
    if not email or not email.strip():
        raise DirectoryError(
            ErrorKind.UNAUTHORIZED, "Please log in again to continue"
        )
    return email.strip()


class RoomDirectoryClient:
    """
    Async client for the backend room directory.

    Attributes:
        timeout: Transport timeout in seconds for each request
    """

    # The join endpoint's HTTP method
    JOIN_METHOD = "POST"

    def __init__(
        self,
        base_url_provider: Callable[[], str],
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = DEFAULT_HTTP_TIMEOUT,
    ):
        """
        Initialize the directory client.

        Args:
            base_url_provider: Returns the current API base URL, normally
                               ``EndpointResolver.resolve``
            session: Optional HTTP session (for dependency
                     injection/testing)
            timeout: Transport timeout in seconds, None to wait forever
        """
        self._base_url_provider = base_url_provider
        self._owns_session = session is None
        self._session = session or requests.Session()
        self.timeout = timeout

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()
            logger.debug("HTTP session closed")

    @property
    def base_url(self) -> str:
        return self._base_url_provider().rstrip("/")

    async def _send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Tuple[int, Any]:
        """
        Perform one HTTP round trip.

        Returns:
            Tuple of (status_code, decoded JSON body or None)

        Raises:
            DirectoryError: NETWORK_UNAVAILABLE if no response arrived
        """
        url = self.base_url + path
        logger.debug(f"{method} {url} body={body} params={params}")

        try:
            response = await asyncio.to_thread(
                self._session.request,
                method,
                url,
                json=body,
                params=params,
                timeout=self.timeout,
            )
        except (
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
        ) as e:
            logger.error(f"{method} {url} failed: {e}")
            raise DirectoryError(ErrorKind.NETWORK_UNAVAILABLE) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise DirectoryError(ErrorKind.UNKNOWN, str(e)) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        return response.status_code, payload

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Perform a round trip and raise DirectoryError on non-2xx."""
        status_code, payload = await self._send(method, path, body, params)
        if not 200 <= status_code < 300:
            error = error_from_payload(status_code, payload)
            logger.error(
                f"{method} {path} -> {status_code} "
                f"({error.kind.value}): {error.user_message}"
            )
            raise error
        return payload

    @staticmethod
    def _parse_room(payload: Any) -> Room:
        try:
            return Room.from_dict(payload)
        except (ValueError, TypeError) as e:
            raise DirectoryError(
                ErrorKind.UNKNOWN, f"Malformed room in response: {e}"
            ) from e

    async def list_rooms(self) -> List[Room]:
        """
        Fetch the current room list.

        Returns:
            List of rooms, possibly empty

        Raises:
            DirectoryError: If the request fails or the body is not a list
        """
        payload = await self._request("GET", "/rooms")
        if not isinstance(payload, list):
            raise DirectoryError(ErrorKind.UNKNOWN, "Malformed room list")

        rooms = []
        for item in payload:
            try:
                rooms.append(Room.from_dict(item))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed room entry: {e}")

        logger.info(f"Fetched {len(rooms)} rooms")
        return rooms

    async def get_room(self, room_id: str) -> Room:
        """
        Fetch a single room.

        Raises:
            DirectoryError: NOT_FOUND if the room does not exist
        """
        payload = await self._request("GET", _room_path(room_id))
        return self._parse_room(payload)

    async def create_room(
        self,
        room_id: str,
        host_email: str,
        time_control_minutes: int = DEFAULT_TIME_CONTROL_MINUTES,
    ) -> Room:
        """
        Create a room with a client-generated id.

        Args:
            room_id: Id for the new room
            host_email: Email of the creating user
            time_control_minutes: Game clock for the room

        Returns:
            The room as persisted by the backend

        Raises:
            DirectoryError: UNAUTHORIZED if host_email is blank (no request
                            is sent), CONFLICT if the id is taken
        """
        host_email = _require_email(host_email)
        request = CreateRoomRequest(room_id, host_email, time_control_minutes)
        logger.info(f"Creating room '{room_id}' for {host_email}")
        payload = await self._request("POST", "/rooms", request.to_dict())
        return self._parse_room(payload)

    async def join_room(self, room_id: str, member_email: str) -> Room:
        """
        Join a room.

        Joining a room the user already belongs to succeeds and returns the
        room unchanged.

        Raises:
            DirectoryError: UNAUTHORIZED if member_email is blank,
                            NOT_FOUND if the room does not exist,
                            ROOM_FULL if it already has two members
        """
        member_email = _require_email(member_email)
        request = JoinRoomRequest(member_email)
        logger.info(f"Joining room '{room_id}' as {member_email}")

        status_code, payload = await self._send(
            self.JOIN_METHOD, _room_path(room_id) + "/join", request.to_dict()
        )
        if 200 <= status_code < 300:
            return self._parse_room(payload)

        if is_already_member(status_code, error_text(payload)):
            logger.info(f"{member_email} already in room '{room_id}'")
            return await self.get_room(room_id)

        error = error_from_payload(status_code, payload)
        logger.error(
            f"Failed to join room '{room_id}' ({error.kind.value}): "
            f"{error.user_message}"
        )
        raise error

    async def delete_room(self, room_id: str, requester_email: str) -> None:
        """
        Delete a room; only its host may do so.

        The requester is sent in the body and as a query parameter, since
        some proxies drop DELETE bodies.

        Raises:
            DirectoryError: UNAUTHORIZED if requester_email is blank,
                            FORBIDDEN if the requester is not the host,
                            NOT_FOUND if the room is already gone,
                            CONFLICT while a game is in progress
        """
        requester_email = _require_email(requester_email)
        request = DeleteRoomRequest(requester_email)
        logger.info(f"Deleting room '{room_id}' as {requester_email}")
        await self._request(
            "DELETE",
            _room_path(room_id),
            request.to_dict(),
            params={"email": requester_email},
        )
