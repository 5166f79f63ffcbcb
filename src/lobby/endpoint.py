"""
Endpoint Resolution for the Room Backend

This module decides which REST base URL the lobby talks to. The active URL
is stored per platform, so two runtimes sharing one settings file (say a
browser build and an Android emulator) keep separate preferences.

Resolution order when nothing is stored yet:
    1. An explicit override URL (deployment configuration)
    2. The platform's built-in default
    3. The generic fallback

The first resolution writes the computed default back to the store so
later resolutions return the same value even if the defaults change.
"""

import json
import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

API_SUFFIX = "/api"

STORAGE_KEY_PREFIX = "@chess/api_url"

FALLBACK_URL = "http://localhost:5000/api"

DEFAULT_SETTINGS_PATH = Path("~/.config/chess-lobby/settings.json")

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


class Platform(Enum):
    """Runtime platforms with their own stored endpoint."""

    WEB = "web"
    ANDROID = "android"
    IOS = "ios"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Platform":
        """Map a platform name to a Platform, unknown names to DEFAULT."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.DEFAULT


PLATFORM_DEFAULTS = {
    Platform.WEB: "http://localhost:5000/api",
    Platform.ANDROID: "http://10.0.2.2:5000/api",
    Platform.IOS: "http://127.0.0.1:5000/api",
}


def storage_key(platform: Platform) -> str:
    """Storage key holding the endpoint for ``platform``."""
    if platform == Platform.DEFAULT:
        return STORAGE_KEY_PREFIX
    return f"{STORAGE_KEY_PREFIX}_{platform.value}"


def normalize_url(candidate: str) -> str:
    """
    Normalize a user-entered server address into an API base URL.

    Adds ``http://`` when no scheme is given, strips trailing slashes and
    appends the API suffix.

    Examples:
        >>> normalize_url("10.0.2.2:5000")
        'http://10.0.2.2:5000/api'
        >>> normalize_url("https://host/")
        'https://host/api'
    """
    url = candidate.strip()
    if not _SCHEME_RE.match(url):
        url = f"http://{url}"
    return url.rstrip("/") + API_SUFFIX


def is_valid_url(url: str) -> bool:
    """Whether ``url`` is an http(s) URL with a host."""
    try:
        parts = urlsplit(url)
        # Accessing .port validates the port number
        parts.port
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


class MemoryStore:
    """In-memory key/value store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileStore:
    """
    Key/value store persisted as a JSON object on disk.

    Attributes:
        path: Location of the settings file
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or DEFAULT_SETTINGS_PATH).expanduser()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self.path} is not an object")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)


class EndpointResolver:
    """
    Resolves and persists the REST base URL for one platform.

    Attributes:
        platform: Platform whose stored endpoint is used
        override: Deployment-provided URL that replaces the built-in
                  defaults (it never replaces a stored user choice)
    """

    def __init__(
        self,
        store,
        platform: Platform = Platform.DEFAULT,
        override: Optional[str] = None,
    ):
        """
        Initialize the resolver.

        Args:
            store: Object with ``get(key)`` and ``set(key, value)``
            platform: Platform whose key namespace is used
            override: Optional server address taking precedence over the
                      platform default
        """
        self._store = store
        self.platform = platform
        self.override = override
        self._active: Optional[str] = None

    @property
    def storage_key(self) -> str:
        return storage_key(self.platform)

    def default_url(self) -> str:
        """The URL used when nothing is stored for this platform."""
        if self.override and self.override.strip():
            url = normalize_url(self.override)
            if is_valid_url(url):
                return url
            logger.warning(f"Ignoring invalid override URL: {self.override!r}")
        return PLATFORM_DEFAULTS.get(self.platform, FALLBACK_URL)

    def resolve(self) -> str:
        """
        Return the active base URL, loading or seeding it on first use.

        Returns:
            Normalized base URL ending in the API suffix
        """
        if self._active is not None:
            return self._active

        key = self.storage_key
        try:
            stored = self._store.get(key)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load stored API URL: {e}")
            self._active = self.default_url()
            return self._active

        if stored and is_valid_url(stored):
            logger.info(
                f"Loading stored URL for {self.platform.value}: {stored}"
            )
            self._active = stored
            return self._active

        if stored:
            logger.warning(f"Ignoring invalid stored URL: {stored!r}")

        default = self.default_url()
        logger.info(f"Using default URL for {self.platform.value}: {default}")
        try:
            self._store.set(key, default)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to save default API URL: {e}")
        self._active = default
        return self._active

    def persist(self, candidate: str) -> bool:
        """
        Validate, normalize and store a new server address.

        Args:
            candidate: User-entered address, e.g. ``"192.168.1.5:5000"``

        Returns:
            True if the address was stored and is now active, False if it
            was rejected or could not be saved (nothing changes then)
        """
        if not candidate or not candidate.strip():
            logger.warning("Empty URL provided")
            return False

        normalized = normalize_url(candidate)
        if not is_valid_url(normalized):
            logger.warning(f"Invalid API URL: {candidate!r}")
            return False

        try:
            self._store.set(self.storage_key, normalized)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to save API URL: {e}")
            return False

        logger.info(f"Saving URL for {self.platform.value}: {normalized}")
        self._active = normalized
        return True

    def realtime_url(self) -> str:
        """
        Derive the Socket.IO server origin from the active REST base URL.

        The API suffix is removed; the Socket.IO path is passed to the
        client separately.
        """
        base = self.resolve()
        if base.endswith(API_SUFFIX):
            base = base[: -len(API_SUFFIX)]
        return base
