"""Shared fixtures: an in-memory MPD and a recorder for bridge notifications."""

from typing import Any, Dict, List, Optional

import pytest

from mpd_mpris_bridge.config import ArtConfig, Config
from mpd_mpris_bridge.errors import ConnectionLostError
from mpd_mpris_bridge.event_bus import (
    PROPERTY_CHANGED,
    SEEKED,
    TRACK_ADDED,
    TRACK_LIST_REPLACED,
    TRACK_REMOVED,
    EventBus,
)
from mpd_mpris_bridge.instance import Instance


def song(song_id: int, pos: Optional[int] = None, duration: Optional[str] = "100.0", **tags: str) -> Dict[str, Any]:
    """Attributes of one queue entry as MpdClient returns them (lowercase keys)."""
    attrs: Dict[str, Any] = {"id": str(song_id), "file": f"music/song{song_id}.flac"}
    if pos is not None:
        attrs["pos"] = str(pos)
    if duration is not None:
        attrs["duration"] = duration
    attrs.update(tags)
    return attrs


class FakeMpd:
    """Stands in for MpdClient.

    ``status``, ``current``, ``playlist`` and ``changes`` are what the fetch
    methods return. Commands are recorded in ``commands`` and the common ones
    update ``status`` the way MPD would.
    """

    display_address = "localhost:6600"

    def __init__(self) -> None:
        self.status: Dict[str, Any] = {
            "state": "stop",
            "volume": "50",
            "repeat": "0",
            "random": "0",
            "single": "0",
            "consume": "0",
            "playlist": "1",
            "playlistlength": "0",
        }
        self.current: Dict[str, Any] = {}
        self.playlist: List[Dict[str, Any]] = []
        self.changes: List[Dict[str, Any]] = []
        self.art: Dict[str, bytes] = {}
        self.idle_results: List[List[str]] = []

        self.commands: List[tuple] = []
        self.status_calls = 0
        self.plchanges_calls: List[int] = []
        self.fail_with: Optional[Exception] = None
        self.ping_error: Optional[Exception] = None
        self.next_song_id = 100
        self.closed = False

    def set_queue(self, *song_ids: int, version: int = 1) -> None:
        self.playlist = [song(song_id, pos) for pos, song_id in enumerate(song_ids)]
        self.status["playlist"] = str(version)
        self.status["playlistlength"] = str(len(song_ids))

    def play_song(self, song_id: int, state: str = "play", elapsed: str = "10.0", duration: str = "100.0") -> None:
        self.current = song(song_id, duration=duration, title=f"Song {song_id}")
        self.status.update(state=state, songid=str(song_id), elapsed=elapsed)

    # --- MpdClient interface ---

    def fetch_status(self) -> Dict[str, Any]:
        self._check()
        self.status_calls += 1
        return dict(self.status)

    def fetch_current_track(self) -> Dict[str, Any]:
        self._check()
        return dict(self.current)

    def fetch_playlist_changes(self, since_version: int) -> List[Dict[str, Any]]:
        self._check()
        self.plchanges_calls.append(since_version)
        return [dict(change) for change in self.changes]

    def fetch_full_playlist(self) -> List[Dict[str, Any]]:
        self._check()
        return [dict(entry) for entry in self.playlist]

    def fetch_art_bytes(self, path: str) -> bytes:
        return self.art.get(path, b"")

    def issue_command(self, name: str, *args: Any) -> Any:
        self._check()
        self.commands.append((name, *args))
        if name == "play":
            self.status["state"] = "play"
        elif name == "pause":
            self.status["state"] = "pause"
        elif name == "stop":
            self.status["state"] = "stop"
        elif name == "setvol":
            self.status["volume"] = str(args[0])
        elif name in ("repeat", "random", "single"):
            self.status[name] = str(args[0])
        elif name == "seekid":
            self.status["elapsed"] = args[1]
        elif name == "addid":
            self.next_song_id += 1
            return str(self.next_song_id)
        return None

    def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    def wait_for_change(self, subsystems, cancel) -> Optional[List[str]]:
        if cancel.is_set() or not self.idle_results:
            return None
        return self.idle_results.pop(0)

    def close(self) -> None:
        self.closed = True

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


class EventRecorder:
    """Collects everything published on the bus, in order."""

    TOPICS = (PROPERTY_CHANGED, SEEKED, TRACK_ADDED, TRACK_REMOVED, TRACK_LIST_REPLACED)

    def __init__(self, event_bus: EventBus) -> None:
        self.events: List[Dict[str, Any]] = []
        for topic in self.TOPICS:
            event_bus.subscribe(topic, self.events.append)

    def topics(self) -> List[str]:
        return [event["__topic"] for event in self.events]

    def of(self, topic: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event["__topic"] == topic]

    def changed(self, name: str) -> List[Any]:
        """Values announced for property ``name``."""
        return [event["value"] for event in self.of(PROPERTY_CHANGED) if event["name"] == name]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def fake_mpd() -> FakeMpd:
    return FakeMpd()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus: EventBus) -> EventRecorder:
    return EventRecorder(event_bus)


@pytest.fixture
def config() -> Config:
    return Config(art=ArtConfig(enabled=False))


@pytest.fixture
def instance(fake_mpd: FakeMpd, config: Config, event_bus: EventBus, recorder: EventRecorder) -> Instance:
    return Instance(fake_mpd, config, event_bus)


@pytest.fixture
def connection_lost() -> ConnectionLostError:
    return ConnectionLostError("connection to mpd is severed: broken pipe")
