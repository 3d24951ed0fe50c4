"""Typed access to MPD on top of python-mpd2.

Two connections are kept: one for commands, shared by every thread behind a
lock (python-mpd2 clients are not thread safe), and one that only ever sits in
``idle`` so waiting for changes never blocks a command.
"""

import logging
import select
import threading
from typing import Any, Dict, List, Mapping, Optional

from mpd import CommandError, ConnectionError as MPDConnectionError, MPDClient, MPDError

from .errors import CommandRejectedError, ConnectionLostError

_LOGGER = logging.getLogger(__name__)

Attrs = Dict[str, Any]

# How often a blocked idle checks for cancellation
_IDLE_POLL_SECONDS = 0.5


def _normalize(attrs: Mapping[str, Any]) -> Attrs:
    return {str(key).lower(): value for key, value in attrs.items()}


class MpdClient:
    """The MPD collaborator used by the synchronizer, dispatcher and watcher."""

    def __init__(
        self,
        network: str,
        address: str,
        port: int = 6600,
        password: Optional[str] = None,
        timeout: Optional[float] = 10,
    ) -> None:
        self.network = network
        self.address = address
        self.port = port
        self._password = password
        self._timeout = timeout

        self._client = MPDClient()
        self._idle_client = MPDClient()
        self._lock = threading.Lock()
        self._idle_lock = threading.Lock()

    @property
    def display_address(self) -> str:
        if self.network == "tcp":
            return f"{self.address}:{self.port}"
        return self.address

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        for client in (self._client, self._idle_client):
            client.timeout = self._timeout
            try:
                if self.network == "tcp":
                    client.connect(self.address, self.port)
                else:
                    client.connect(self.address)
                if self._password:
                    client.password(self._password)
            except CommandError as err:
                raise CommandRejectedError(f"Cannot authenticate with mpd: {err}") from err
            except (MPDError, OSError) as err:
                raise ConnectionLostError(
                    f"Cannot connect to mpd at {self.display_address}: {err}"
                ) from err
        _LOGGER.info("Connected to mpd at %s (protocol %s)", self.display_address, self._client.mpd_version)

    def close(self) -> None:
        for client in (self._client, self._idle_client):
            try:
                client.disconnect()
            except (MPDError, OSError):
                _LOGGER.debug("Error while disconnecting from mpd", exc_info=True)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def fetch_status(self) -> Attrs:
        return _normalize(self._call("status"))

    def fetch_current_track(self) -> Attrs:
        return _normalize(self._call("currentsong"))

    def fetch_playlist_changes(self, since_version: int) -> List[Attrs]:
        return [_normalize(item) for item in self._call("plchanges", since_version)]

    def fetch_full_playlist(self) -> List[Attrs]:
        return [_normalize(item) for item in self._call("playlistinfo")]

    def fetch_art_bytes(self, path: str) -> bytes:
        """Embedded picture first (``readpicture``), then the folder cover (``albumart``)."""
        try:
            picture = self._call("readpicture", path)
        except CommandRejectedError:
            picture = {}
        if picture and picture.get("binary"):
            return picture["binary"]
        cover = self._call("albumart", path)
        return cover.get("binary", b"") if cover else b""

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def issue_command(self, name: str, *args: Any) -> Any:
        _LOGGER.debug("mpd command: %s %s", name, args)
        return self._call(name, *args)

    def ping(self) -> None:
        self._call("ping")

    def wait_for_change(
        self, subsystems: List[str], cancel: threading.Event
    ) -> Optional[List[str]]:
        """Blocks until one of ``subsystems`` changes.

        Returns the changed subsystems, or None once ``cancel`` is set.
        """
        with self._idle_lock:
            client = self._idle_client
            try:
                client.send_idle(*subsystems)
                while not cancel.is_set():
                    readable, _, _ = select.select([client], [], [], _IDLE_POLL_SECONDS)
                    if readable:
                        return list(client.fetch_idle())
                client.noidle()
                return None
            except CommandError as err:
                raise CommandRejectedError(str(err)) from err
            except (MPDError, OSError, ValueError) as err:
                raise ConnectionLostError(f"polling for events: {err}") from err

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _call(self, name: str, *args: Any) -> Any:
        with self._lock:
            try:
                return getattr(self._client, name)(*args)
            except CommandError as err:
                raise CommandRejectedError(str(err)) from err
            except (MPDConnectionError, OSError) as err:
                raise ConnectionLostError(f"connection to mpd is severed: {err}") from err
            except MPDError as err:
                raise ConnectionLostError(f"mpd protocol error on {name}: {err}") from err
