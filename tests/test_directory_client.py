"""
Tests for RoomDirectoryClient.

The HTTP session is a MagicMock; each test queues the responses the
backend would send and checks the resulting rooms or DirectoryError.
"""

from unittest.mock import MagicMock

import pytest
import requests

from lobby import DirectoryError, ErrorKind, RoomDirectoryClient, RoomStatus

BASE_URL = "http://localhost:5000/api"

ROOM_DOC = {
    "_id": "6650f0c2a1b2c3d4e5f60718",
    "roomId": "ab12cd",
    "hostEmail": "alice@example.com",
    "members": ["alice@example.com"],
    "status": "waiting",
    "timeControlMinutes": 10,
    "createdAt": "2026-10-19T10:00:00.000Z",
    "updatedAt": "2026-10-19T10:00:00.000Z",
    "__v": 0,
}


def response(status_code, payload=None):
    mock = MagicMock()
    mock.status_code = status_code
    if payload is None:
        mock.json.side_effect = ValueError("No JSON body")
    else:
        mock.json.return_value = payload
    return mock


def make_client(*responses, base_url=BASE_URL):
    session = MagicMock()
    session.request.side_effect = list(responses)
    client = RoomDirectoryClient(lambda: base_url, session=session)
    return client, session


# ===== List / get =====


@pytest.mark.asyncio
async def test_list_rooms_parses_backend_documents():
    client, session = make_client(response(200, [ROOM_DOC]))

    rooms = await client.list_rooms()

    assert len(rooms) == 1
    assert rooms[0].room_id == "ab12cd"
    assert rooms[0].status == RoomStatus.WAITING
    session.request.assert_called_once_with(
        "GET",
        f"{BASE_URL}/rooms",
        json=None,
        params=None,
        timeout=20.0,
    )


@pytest.mark.asyncio
async def test_list_rooms_empty():
    client, _ = make_client(response(200, []))
    assert await client.list_rooms() == []


@pytest.mark.asyncio
async def test_list_rooms_skips_malformed_entries():
    client, _ = make_client(response(200, [{"roomId": "x"}, ROOM_DOC]))

    rooms = await client.list_rooms()

    assert [room.room_id for room in rooms] == ["ab12cd"]


@pytest.mark.asyncio
async def test_list_rooms_rejects_non_list_body():
    client, _ = make_client(response(200, {"rooms": []}))

    with pytest.raises(DirectoryError) as exc_info:
        await client.list_rooms()

    assert exc_info.value.kind == ErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_get_room_not_found():
    client, _ = make_client(response(404, {"error": "Room not found"}))

    with pytest.raises(DirectoryError) as exc_info:
        await client.get_room("ab12cd")

    assert exc_info.value.kind == ErrorKind.NOT_FOUND
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_room_id_is_quoted_in_path():
    client, session = make_client(response(200, ROOM_DOC))

    await client.get_room("a/b")

    assert session.request.call_args.args[1] == f"{BASE_URL}/rooms/a%2Fb"


@pytest.mark.asyncio
async def test_base_url_is_read_on_every_call():
    urls = iter(["http://one:5000/api", "http://two:5000/api/"])
    session = MagicMock()
    session.request.side_effect = [response(200, []), response(200, [])]
    client = RoomDirectoryClient(lambda: next(urls), session=session)

    await client.list_rooms()
    await client.list_rooms()

    called = [call.args[1] for call in session.request.call_args_list]
    assert called == ["http://one:5000/api/rooms", "http://two:5000/api/rooms"]


# ===== Create =====


@pytest.mark.asyncio
async def test_create_room_sends_camel_case_body():
    client, session = make_client(response(201, ROOM_DOC))

    room = await client.create_room("ab12cd", "alice@example.com", 10)

    assert room.host_email == "alice@example.com"
    assert session.request.call_args.args[:2] == ("POST", f"{BASE_URL}/rooms")
    assert session.request.call_args.kwargs["json"] == {
        "roomId": "ab12cd",
        "hostEmail": "alice@example.com",
        "timeControlMinutes": 10,
    }


@pytest.mark.asyncio
async def test_create_room_blank_email_sends_nothing():
    client, session = make_client()

    with pytest.raises(DirectoryError) as exc_info:
        await client.create_room("ab12cd", "  ")

    assert exc_info.value.kind == ErrorKind.UNAUTHORIZED
    session.request.assert_not_called()


@pytest.mark.asyncio
async def test_create_room_conflict():
    client, _ = make_client(response(400, {"error": "Room already exists"}))

    with pytest.raises(DirectoryError) as exc_info:
        await client.create_room("ab12cd", "alice@example.com")

    assert exc_info.value.kind == ErrorKind.CONFLICT
    assert exc_info.value.user_message == "Room already exists"


# ===== Join =====


@pytest.mark.asyncio
async def test_join_room_posts_email():
    joined = dict(ROOM_DOC, members=["alice@example.com", "bob@example.com"])
    client, session = make_client(response(200, joined))

    room = await client.join_room("ab12cd", "bob@example.com")

    assert room.members == ["alice@example.com", "bob@example.com"]
    assert session.request.call_args.args == (
        "POST",
        f"{BASE_URL}/rooms/ab12cd/join",
    )
    assert session.request.call_args.kwargs["json"] == {
        "email": "bob@example.com"
    }


@pytest.mark.asyncio
async def test_join_full_room():
    client, _ = make_client(response(400, {"error": "Room is full"}))

    with pytest.raises(DirectoryError) as exc_info:
        await client.join_room("ab12cd", "carol@example.com")

    assert exc_info.value.kind == ErrorKind.ROOM_FULL


@pytest.mark.asyncio
async def test_join_when_already_member_returns_room():
    client, session = make_client(
        response(400, {"error": "User already in room"}),
        response(200, ROOM_DOC),
    )

    room = await client.join_room("ab12cd", "alice@example.com")

    assert room.room_id == "ab12cd"
    assert session.request.call_count == 2
    assert session.request.call_args.args == (
        "GET",
        f"{BASE_URL}/rooms/ab12cd",
    )


@pytest.mark.asyncio
async def test_join_missing_room():
    client, _ = make_client(response(404, {"error": "Room not found"}))

    with pytest.raises(DirectoryError) as exc_info:
        await client.join_room("zzzzzz", "bob@example.com")

    assert exc_info.value.kind == ErrorKind.NOT_FOUND


# ===== Delete =====


@pytest.mark.asyncio
async def test_delete_room_sends_email_in_body_and_query():
    client, session = make_client(
        response(200, {"message": "Room deleted successfully"})
    )

    await client.delete_room("ab12cd", "alice@example.com")

    kwargs = session.request.call_args.kwargs
    assert session.request.call_args.args[0] == "DELETE"
    assert kwargs["json"] == {"email": "alice@example.com"}
    assert kwargs["params"] == {"email": "alice@example.com"}


@pytest.mark.asyncio
async def test_delete_room_by_non_host_is_forbidden():
    client, _ = make_client(
        response(403, {"error": "Only room host can delete the room"})
    )

    with pytest.raises(DirectoryError) as exc_info:
        await client.delete_room("ab12cd", "bob@example.com")

    assert exc_info.value.kind == ErrorKind.FORBIDDEN
    assert exc_info.value.user_message == "Only room host can delete the room"


@pytest.mark.asyncio
async def test_delete_room_during_game_is_conflict():
    client, _ = make_client(
        response(
            400, {"error": "Cannot delete room while game is in progress"}
        )
    )

    with pytest.raises(DirectoryError) as exc_info:
        await client.delete_room("ab12cd", "alice@example.com")

    assert exc_info.value.kind == ErrorKind.CONFLICT


# ===== Transport failures =====


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exception",
    [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("timed out"),
    ],
)
async def test_transport_failures_are_network_unavailable(exception):
    client, _ = make_client(exception)

    with pytest.raises(DirectoryError) as exc_info:
        await client.list_rooms()

    assert exc_info.value.kind == ErrorKind.NETWORK_UNAVAILABLE
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_server_error_without_body_is_unknown():
    client, _ = make_client(response(500))

    with pytest.raises(DirectoryError) as exc_info:
        await client.list_rooms()

    assert exc_info.value.kind == ErrorKind.UNKNOWN
    assert exc_info.value.user_message == "Unexpected server error"


# ===== Session lifetime =====


def test_close_closes_own_session(monkeypatch):
    session = MagicMock()
    monkeypatch.setattr(requests, "Session", MagicMock(return_value=session))
    client = RoomDirectoryClient(lambda: BASE_URL)

    client.close()

    session.close.assert_called_once_with()


def test_close_leaves_injected_session_open():
    client, session = make_client()

    client.close()

    session.close.assert_not_called()
