"""
Tests for mapping backend failures onto ErrorKind.
"""

import pytest

from lobby import DirectoryError, ErrorKind
from lobby.errors import (
    classify_response,
    error_from_payload,
    is_already_member,
)


@pytest.mark.parametrize(
    "status_code, message, expected",
    [
        (401, None, ErrorKind.UNAUTHORIZED),
        (403, "Only room host can delete the room", ErrorKind.FORBIDDEN),
        (404, "Room not found", ErrorKind.NOT_FOUND),
        (400, "Room is full", ErrorKind.ROOM_FULL),
        (409, "Room is full", ErrorKind.ROOM_FULL),
        (400, "Room already exists", ErrorKind.CONFLICT),
        (409, None, ErrorKind.CONFLICT),
        (
            400,
            "Cannot delete room while game is in progress",
            ErrorKind.CONFLICT,
        ),
        (400, "Bad request", ErrorKind.UNKNOWN),
        (500, "Internal server error", ErrorKind.UNKNOWN),
    ],
)
def test_classify_response(status_code, message, expected):
    assert classify_response(status_code, message) == expected


def test_already_member_needs_status_and_text():
    assert is_already_member(400, "User already in room")
    assert not is_already_member(404, "User already in room")
    assert not is_already_member(400, "Room is full")
    assert not is_already_member(400, None)


def test_error_from_payload_keeps_backend_text():
    error = error_from_payload(400, {"error": " Room is full "})

    assert error.kind == ErrorKind.ROOM_FULL
    assert error.message == "Room is full"
    assert error.status_code == 400


def test_user_message_falls_back_to_default():
    error = error_from_payload(502, {"unexpected": True})

    assert error.message is None
    assert error.user_message == "Unexpected server error"
    assert str(error) == "Unexpected server error"


def test_directory_error_is_an_exception():
    with pytest.raises(DirectoryError) as exc_info:
        raise DirectoryError(ErrorKind.NETWORK_UNAVAILABLE)
    assert exc_info.value.user_message == "Could not reach the server"
