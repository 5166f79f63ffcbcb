"""
Lobby Client Configuration

Settings are read from environment variables, each with a default:

    CHESS_LOBBY_PLATFORM        web | android | ios | default
    CHESS_LOBBY_API_URL         override for the default server address
    CHESS_LOBBY_SETTINGS_PATH   JSON file holding the stored endpoint
    CHESS_LOBBY_EMAIL           email of the signed-in user
    CHESS_LOBBY_HTTP_TIMEOUT    transport timeout in seconds
    CHESS_LOBBY_REALTIME_PATH   Socket.IO path on the server
    CHESS_LOBBY_LOG_LEVEL       log level of the command line client
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .directory import DEFAULT_HTTP_TIMEOUT
from .endpoint import DEFAULT_SETTINGS_PATH, Platform
from .realtime import DEFAULT_SOCKETIO_PATH

DEFAULT_REALTIME_PATH = DEFAULT_SOCKETIO_PATH
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class LobbySettings:
    """
    Runtime settings of the lobby client.

    Attributes:
        platform: Platform namespace for the stored endpoint
        api_url_override: Deployment-provided server address, if any
        settings_path: Location of the endpoint store
        user_email: Email of the signed-in user, if known
        http_timeout: Transport timeout in seconds
        realtime_path: Socket.IO endpoint path on the server
        log_level: Log level name
    """

    platform: Platform = Platform.DEFAULT
    api_url_override: Optional[str] = None
    settings_path: Path = DEFAULT_SETTINGS_PATH
    user_email: Optional[str] = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    realtime_path: str = DEFAULT_REALTIME_PATH
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "LobbySettings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If CHESS_LOBBY_HTTP_TIMEOUT is not a positive number
        """
        env = os.environ if environ is None else environ

        timeout_raw = env.get("CHESS_LOBBY_HTTP_TIMEOUT", "")
        http_timeout = DEFAULT_HTTP_TIMEOUT
        if timeout_raw.strip():
            try:
                http_timeout = float(timeout_raw)
            except ValueError:
                raise ValueError(
                    f"CHESS_LOBBY_HTTP_TIMEOUT must be a number, "
                    f"got {timeout_raw!r}"
                )
            if http_timeout <= 0:
                raise ValueError("CHESS_LOBBY_HTTP_TIMEOUT must be positive")

        return cls(
            platform=Platform.parse(env.get("CHESS_LOBBY_PLATFORM")),
            api_url_override=env.get("CHESS_LOBBY_API_URL") or None,
            settings_path=Path(
                env.get("CHESS_LOBBY_SETTINGS_PATH") or DEFAULT_SETTINGS_PATH
            ).expanduser(),
            user_email=(env.get("CHESS_LOBBY_EMAIL") or "").strip() or None,
            http_timeout=http_timeout,
            realtime_path=(
                env.get("CHESS_LOBBY_REALTIME_PATH") or DEFAULT_REALTIME_PATH
            ),
            log_level=(
                env.get("CHESS_LOBBY_LOG_LEVEL") or DEFAULT_LOG_LEVEL
            ).upper(),
        )
