"""One running bridge: property tables, components and their lifecycle."""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .album_art import AlbumArtCache
from .config import Config
from .dispatcher import CommandDispatcher, register_write_handlers
from .event_bus import EventBus
from .models import NO_TRACK, Track
from .properties import Emit, Property, PropertyTable
from .synchronizer import StatusSynchronizer
from .tracklist import TrackList
from .watcher import ConnectionWatcher

_LOGGER = logging.getLogger(__name__)

ROOT_IFACE = "org.mpris.MediaPlayer2"
PLAYER_IFACE = "org.mpris.MediaPlayer2.Player"
TRACKLIST_IFACE = "org.mpris.MediaPlayer2.TrackList"

# -----------------------------------------------------------------------------
# Property tables
# -----------------------------------------------------------------------------

def root_properties(event_bus: EventBus, identity: str) -> PropertyTable:
    """https://specifications.freedesktop.org/mpris-spec/latest/Media_Player.html"""
    return PropertyTable(ROOT_IFACE, event_bus, {
        "CanQuit": Property(False, "b"),
        "CanRaise": Property(False, "b"),
        "HasTrackList": Property(True, "b"),
        "Identity": Property(identity, "s"),
        # Empty because we can't add arbitrary files in...
        "SupportedUriSchemes": Property([], "as"),
        "SupportedMimeTypes": Property([], "as"),
    })


def player_properties(event_bus: EventBus) -> PropertyTable:
    """https://specifications.freedesktop.org/mpris-spec/latest/Player_Interface.html"""
    return PropertyTable(PLAYER_IFACE, event_bus, {
        "PlaybackStatus": Property("Stopped", "s"),
        "LoopStatus": Property("None", "s"),
        "Rate": Property(1.0, "d"),
        "Shuffle": Property(False, "b"),
        "Metadata": Property({"mpris:trackid": NO_TRACK}, "a{sv}"),
        "Volume": Property(0.0, "d"),
        # Clients read Position on demand; it is never signalled
        "Position": Property(0, "x", emit=Emit.FALSE),
        "MinimumRate": Property(1.0, "d"),
        "MaximumRate": Property(1.0, "d"),
        "CanGoNext": Property(True, "b"),
        "CanGoPrevious": Property(True, "b"),
        "CanPlay": Property(True, "b"),
        "CanPause": Property(True, "b"),
        "CanSeek": Property(False, "b"),
        "CanControl": Property(True, "b", emit=Emit.FALSE),
    })


def tracklist_properties(event_bus: EventBus) -> PropertyTable:
    """https://specifications.freedesktop.org/mpris-spec/latest/Track_List_Interface.html"""
    return PropertyTable(TRACKLIST_IFACE, event_bus, {
        "Tracks": Property([], "ao", emit=Emit.INVALIDATES),
        "CanEditTracks": Property(True, "b"),
    })

# -----------------------------------------------------------------------------
# Instance
# -----------------------------------------------------------------------------

class Instance:
    """Wires the MPD client to the MPRIS property tables and background tasks."""

    def __init__(self, client, config: Config, event_bus: Optional[EventBus] = None) -> None:
        self.client = client
        self.config = config
        self.event_bus = event_bus or EventBus()

        self.art: Optional[AlbumArtCache] = None
        if config.art.enabled:
            base_dir = Path(config.art.directory) if config.art.directory else None
            self.art = AlbumArtCache(client.fetch_art_bytes, base_dir)

        self.root = root_properties(self.event_bus, f"MPD on {client.display_address}")
        self.player = player_properties(self.event_bus)
        self.tracks = tracklist_properties(self.event_bus)

        self.tracklist = TrackList(client, self.tracks, self.event_bus, art_url=self._art_url)
        self.synchronizer = StatusSynchronizer(
            client, self.player, self.event_bus, self.tracklist, config.sync
        )
        self.dispatcher = CommandDispatcher(client, self.synchronizer)
        register_write_handlers(self.player, self.dispatcher)

        self.stop_event = threading.Event()
        self.watcher = ConnectionWatcher(
            client, self.synchronizer, config.sync, self.fatal, self.stop_event
        )

        self.fatal_error: Optional[BaseException] = None
        self._stop_callbacks: List[Callable[[], None]] = []

    @property
    def tables(self) -> Dict[str, PropertyTable]:
        return {table.interface: table for table in (self.root, self.player, self.tracks)}

    def add_stop_callback(self, callback: Callable[[], None]) -> None:
        """Registers a callback run once when the instance has to stop (e.g. main loop quit)."""
        self._stop_callbacks.append(callback)

    def start(self) -> None:
        """Loads the initial state and starts the background tasks."""
        if self.art is not None:
            self.art.open()
        self.synchronizer.initialize()
        self.watcher.start()
        _LOGGER.debug("Instance started")

    def fatal(self, err: BaseException) -> None:
        """Stops everything after an unrecoverable error."""
        if self.fatal_error is not None:
            return
        _LOGGER.critical("%s", err)
        self.fatal_error = err
        self.request_stop()

    def request_stop(self) -> None:
        self.stop_event.set()
        for callback in self._stop_callbacks:
            try:
                callback()
            except Exception:
                _LOGGER.exception("Error in stop callback")

    def close(self) -> None:
        """Stops the background tasks and releases every resource."""
        self.watcher.stop()
        if self.art is not None:
            self.art.close()
        self.client.close()
        _LOGGER.debug("Instance closed")

    def _art_url(self, track: Track) -> Optional[str]:
        if self.art is None:
            return None
        return self.art.fetch(track.id, track.path)
