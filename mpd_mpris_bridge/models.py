"""Typed snapshots of MPD state and their MPRIS representation."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ParseError
from .parse import AttrParser

_LOGGER = logging.getLogger(__name__)

TRACK_PATH_PREFIX = "/org/mpd/Tracks/"

# https://specifications.freedesktop.org/mpris-spec/latest/Track_List_Interface.html#Simple-Type:Track_Id
NO_TRACK = "/org/mpris/MediaPlayer2/TrackList/NoTrack"

_MICROSECOND = timedelta(microseconds=1)


# -----------------------------------------------------------------------------
# Enumerations
# -----------------------------------------------------------------------------

class PlaybackStatus(str, Enum):
    """MPRIS playback status."""
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"

    @classmethod
    def from_mpd(cls, state: str) -> "PlaybackStatus":
        try:
            return _PLAYBACK_FROM_MPD[state]
        except KeyError:
            raise ParseError(f"unknown playback status: {state}") from None


_PLAYBACK_FROM_MPD = {
    "play": PlaybackStatus.PLAYING,
    "pause": PlaybackStatus.PAUSED,
    "stop": PlaybackStatus.STOPPED,
}


class LoopStatus(str, Enum):
    """MPRIS loop status."""
    NONE = "None"
    TRACK = "Track"
    PLAYLIST = "Playlist"


# (repeat, single) -> LoopStatus. Repeat off means no looping whatever single says.
_LOOP_FROM_MPD = {
    (False, False): LoopStatus.NONE,
    (False, True): LoopStatus.NONE,
    (True, False): LoopStatus.PLAYLIST,
    (True, True): LoopStatus.TRACK,
}

_MPD_FROM_LOOP = {
    LoopStatus.NONE: (False, False),
    LoopStatus.PLAYLIST: (True, False),
    LoopStatus.TRACK: (True, True),
}


def loop_status_from_mpd(repeat: bool, single: bool) -> LoopStatus:
    return _LOOP_FROM_MPD[(repeat, single)]


def mpd_flags_from_loop_status(loop: LoopStatus) -> Tuple[bool, bool]:
    """Returns the ``(repeat, single)`` pair that produces ``loop``."""
    return _MPD_FROM_LOOP[LoopStatus(loop)]


# -----------------------------------------------------------------------------
# Time and track id helpers
# -----------------------------------------------------------------------------

def to_microseconds(value: timedelta) -> int:
    return value // _MICROSECOND


def from_microseconds(value: int) -> timedelta:
    return timedelta(microseconds=value)


def track_object_path(track_id: int) -> str:
    if track_id == -1:
        return NO_TRACK
    return f"{TRACK_PATH_PREFIX}{track_id}"


def _track_number(value: str) -> int:
    # "3/12" style track numbers keep the part before the slash
    try:
        return int(value.split("/", 1)[0])
    except ValueError:
        return 0


def track_id_from_object_path(path: str) -> int:
    """Inverse of :func:`track_object_path`."""
    path = str(path)
    if path == NO_TRACK:
        return -1
    if not path.startswith(TRACK_PATH_PREFIX):
        raise ParseError(f"not a track id: {path}")
    try:
        return int(path[len(TRACK_PATH_PREFIX):])
    except ValueError:
        raise ParseError(f"not a track id: {path}") from None


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Track:
    """A song in the MPD queue. ``id == -1`` means no track."""
    id: int = -1
    path: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    genre: str = ""
    date: str = ""
    track_number: int = 0
    # None for streams and other files without a known length
    duration: Optional[timedelta] = None

    @property
    def object_path(self) -> str:
        return track_object_path(self.id)

    def same_as(self, other: Optional["Track"]) -> bool:
        """Change-detection equality: metadata is not compared."""
        if other is None:
            return False
        return self.id == other.id and self.path == other.path

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> "Track":
        parser = AttrParser(attrs)
        try:
            track_id = int(parser.string("id", optional=True))
        except ValueError:
            return cls()
        if track_id < 0:
            return cls()

        duration: Optional[timedelta] = None
        if parser.has("duration"):
            duration = parser.duration("duration")
        elif parser.has("time"):
            duration = parser.duration("time")

        track = cls(
            id=track_id,
            path=parser.string("file", optional=True),
            title=parser.string("title", optional=True),
            artist=parser.string("artist", optional=True),
            album=parser.string("album", optional=True),
            album_artist=parser.string("albumartist", optional=True),
            genre=parser.string("genre", optional=True),
            date=parser.string("date", optional=True),
            track_number=_track_number(parser.string("track", optional=True)),
            duration=duration,
        )
        parser.raise_for_error()
        return track


@dataclass(frozen=True)
class PlaylistChange:
    """One slot reported by ``plchanges``: ``track`` now sits at ``position``."""
    position: int
    track: Track

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> "PlaylistChange":
        parser = AttrParser(attrs)
        position = parser.integer("pos")
        parser.raise_for_error()
        return cls(position=position, track=Track.from_attrs(attrs))


@dataclass(frozen=True)
class MpdStatus:
    """The typed answer to MPD's ``status`` command."""
    state: str
    volume: float = 0.0
    repeat: bool = False
    random: bool = False
    single: bool = False
    consume: bool = False
    song_id: int = -1
    elapsed: timedelta = timedelta(0)
    seekable: bool = False
    playlist_version: int = 0
    playlist_length: int = 0

    @classmethod
    def from_attrs(cls, attrs: Mapping[str, Any]) -> "MpdStatus":
        parser = AttrParser(attrs)
        state = parser.string("state")
        repeat = parser.boolean("repeat")
        random = parser.boolean("random")
        playlist_version = parser.integer("playlist")
        playlist_length = parser.integer("playlistlength")
        # Missing when MPD has no mixer, -1 when the mixer is unavailable
        volume = max(0.0, parser.number("volume", optional=True))
        # single and consume also know "oneshot"
        single = parser.string("single", optional=True) in ("1", "oneshot")
        consume = parser.string("consume", optional=True) in ("1", "oneshot")
        song_id = parser.integer("songid", optional=True) if parser.has("songid") else -1
        seekable = parser.has("elapsed")
        elapsed = parser.duration("elapsed", optional=True)
        parser.raise_for_error()

        return cls(
            state=state,
            volume=volume,
            repeat=repeat,
            random=random,
            single=single,
            consume=consume,
            song_id=song_id,
            elapsed=elapsed,
            seekable=seekable,
            playlist_version=playlist_version,
            playlist_length=playlist_length,
        )


@dataclass(frozen=True)
class PlayerState:
    """Snapshot of everything the Player interface exposes."""
    playback_status: PlaybackStatus = PlaybackStatus.STOPPED
    loop_status: LoopStatus = LoopStatus.NONE
    shuffle: bool = False
    volume: float = 0.0
    position: timedelta = timedelta(0)
    seekable: bool = False
    current_track: Track = Track()

    @classmethod
    def from_remote(cls, status: MpdStatus, track: Track) -> "PlayerState":
        return cls(
            playback_status=PlaybackStatus.from_mpd(status.state),
            loop_status=loop_status_from_mpd(status.repeat, status.single),
            shuffle=status.random,
            volume=min(1.0, status.volume / 100.0),
            position=status.elapsed,
            seekable=status.seekable,
            current_track=track,
        )


# -----------------------------------------------------------------------------
# MPRIS metadata
# -----------------------------------------------------------------------------

def _non_empty_list(*values: str) -> List[str]:
    return [value for value in values if value]


def metadata_for(track: Track, art_url: Optional[str] = None) -> Dict[str, Any]:
    """Builds the MPRIS metadata map for ``track``.

    https://specifications.freedesktop.org/mpris-spec/latest/Track_List_Interface.html#Mapping:Metadata_Map
    """
    if track.id == -1:
        return {"mpris:trackid": NO_TRACK}

    metadata: Dict[str, Any] = {"mpris:trackid": track.object_path}
    if track.duration is not None:
        metadata["mpris:length"] = to_microseconds(track.duration)

    for key, value in (
        ("xesam:album", track.album),
        ("xesam:title", track.title),
        ("xesam:url", track.path),
        ("xesam:contentCreated", track.date),
    ):
        if value:
            metadata[key] = value

    for key, value in (
        ("xesam:albumArtist", track.album_artist),
        ("xesam:artist", track.artist),
        ("xesam:genre", track.genre),
    ):
        values = _non_empty_list(value)
        if values:
            metadata[key] = values

    if art_url:
        metadata["mpris:artUrl"] = art_url
    if track.track_number:
        metadata["xesam:trackNumber"] = track.track_number

    return metadata
