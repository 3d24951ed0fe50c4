"""Inbound MPRIS commands and property writes.

Every command runs under the synchronizer lock: check what is cheap to check,
send the MPD command, then run one tick so that whatever the caller reads next
already reflects the command.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Sequence

from .errors import CommandRejectedError
from .event_bus import SEEKED
from .models import (
    LoopStatus,
    MpdStatus,
    Track,
    mpd_flags_from_loop_status,
    to_microseconds,
    track_id_from_object_path,
)
from .properties import NotImplementedWrite, PropertyTable, PropertyWriteHandler
from .synchronizer import StatusSynchronizer

_LOGGER = logging.getLogger(__name__)


def _seconds(position: timedelta) -> str:
    return f"{position.total_seconds():.3f}"


class CommandDispatcher:
    """Implements the Player and TrackList methods on top of MPD commands."""

    def __init__(self, client, synchronizer: StatusSynchronizer) -> None:
        self.client = client
        self.sync = synchronizer
        self.tracklist = synchronizer.tracklist

    # -------------------------------------------------------------------------
    # Player methods
    # https://specifications.freedesktop.org/mpris-spec/latest/Player_Interface.html
    # -------------------------------------------------------------------------

    def next(self) -> None:
        _LOGGER.info("Next requested")
        self._run(("next",))

    def previous(self) -> None:
        _LOGGER.info("Previous requested")
        self._run(("previous",))

    def pause(self) -> None:
        _LOGGER.info("Pause requested")
        self._run(("pause", 1))

    def play(self) -> None:
        _LOGGER.info("Play requested")
        self._run(("play",))

    def stop(self) -> None:
        _LOGGER.info("Stop requested")
        self._run(("stop",))

    def play_pause(self) -> None:
        """Pauses while playing, otherwise starts or resumes playback."""
        _LOGGER.info("Play/Pause requested")
        with self.sync.lock:
            if self._status().state == "play":
                self._run(("pause", 1))
            else:
                self._run(("play",))

    def seek(self, offset: timedelta) -> None:
        """Seeks relative to the current position.

        Seeking past the end of the track skips to the next one; seeking
        before its start goes to the start.
        """
        with self.sync.lock:
            status = self._status()
            if not status.seekable:
                return
            _LOGGER.info("Seek(%s) requested", offset)

            track = Track.from_attrs(self.client.fetch_current_track())
            target = status.elapsed + offset
            if track.duration is not None and target > track.duration:
                self._run(("next",))
                return
            self._seek_to(status.song_id, max(target, timedelta(0)))

    def set_position(self, track_path: str, position: timedelta) -> None:
        """Seeks to ``position`` if ``track_path`` is still the current track."""
        with self.sync.lock:
            status = self._status()
            if not status.seekable:
                return
            _LOGGER.info("SetPosition(%s, %s) requested", track_path, position)

            track_id = track_id_from_object_path(track_path)
            if track_id != status.song_id:
                _LOGGER.debug("Ignoring SetPosition for stale track %s", track_path)
                return
            track = Track.from_attrs(self.client.fetch_current_track())
            if position < timedelta(0):
                return
            if track.duration is not None and position > track.duration:
                return
            self._seek_to(track_id, position)

    # -------------------------------------------------------------------------
    # Property writes
    # -------------------------------------------------------------------------

    def set_volume(self, volume: float) -> None:
        percent = max(0, min(100, int(round(float(volume) * 100))))
        _LOGGER.info("Volume changed to %s", percent)
        self._run(("setvol", percent))

    def set_loop_status(self, value: str) -> None:
        try:
            loop = LoopStatus(str(value))
        except ValueError:
            raise CommandRejectedError(f"Invalid loop {value}") from None
        repeat, single = mpd_flags_from_loop_status(loop)
        _LOGGER.info("LoopStatus changed to %s", loop.value)
        self._run(("single", int(single)), ("repeat", int(repeat)))

    def set_shuffle(self, shuffle: bool) -> None:
        _LOGGER.info("Shuffle changed to %s", bool(shuffle))
        self._run(("random", int(bool(shuffle))))

    # -------------------------------------------------------------------------
    # TrackList methods
    # https://specifications.freedesktop.org/mpris-spec/latest/Track_List_Interface.html
    # -------------------------------------------------------------------------

    def get_tracks_metadata(self, track_paths: Sequence[str]) -> List[Dict[str, Any]]:
        with self.sync.lock:
            tracks = [self.tracklist.find(track_id_from_object_path(p)) for p in track_paths]
            return [self.tracklist.metadata(track) for track in tracks if track is not None]

    def go_to(self, track_path: str) -> None:
        track_id = track_id_from_object_path(track_path)
        _LOGGER.info("GoTo(%s) requested", track_path)
        with self.sync.lock:
            if self.tracklist.find(track_id) is None:
                return
            self._run(("playid", track_id))

    def remove_track(self, track_path: str) -> None:
        track_id = track_id_from_object_path(track_path)
        _LOGGER.info("RemoveTrack(%s) requested", track_path)
        with self.sync.lock:
            if self.tracklist.find(track_id) is None:
                return
            self._run(("deleteid", track_id))

    def add_track(self, uri: str, after_path: str, set_as_current: bool) -> None:
        after_id = track_id_from_object_path(after_path)
        _LOGGER.info("AddTrack(%s, %s, %s) requested", uri, after_path, set_as_current)
        with self.sync.lock:
            ids = [track.id for track in self.tracklist.tracks]
            if after_id == -1:
                position = 0
            elif after_id in ids:
                position = ids.index(after_id) + 1
            else:
                return
            new_id = self.client.issue_command("addid", uri, position)
            if set_as_current:
                self.client.issue_command("playid", int(new_id))
            self.sync.tick_locked()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _run(self, *commands: tuple) -> None:
        with self.sync.lock:
            for command in commands:
                self.client.issue_command(*command)
            self.sync.tick_locked()

    def _status(self) -> MpdStatus:
        return MpdStatus.from_attrs(self.client.fetch_status())

    def _seek_to(self, track_id: int, position: timedelta) -> None:
        self.client.issue_command("seekid", track_id, _seconds(position))
        # The jump is announced once, here, instead of by the tick
        self.sync.record_seek(position)
        self.sync.tick_locked()
        self.sync.event_bus.publish(SEEKED, {"position": to_microseconds(position)})


# -----------------------------------------------------------------------------
# Property write handlers
# -----------------------------------------------------------------------------

class LoopStatusWrite(PropertyWriteHandler):
    def __init__(self, dispatcher: CommandDispatcher) -> None:
        self.dispatcher = dispatcher

    def on_write(self, value: Any) -> None:
        self.dispatcher.set_loop_status(value)


class VolumeWrite(PropertyWriteHandler):
    def __init__(self, dispatcher: CommandDispatcher) -> None:
        self.dispatcher = dispatcher

    def on_write(self, value: Any) -> None:
        self.dispatcher.set_volume(value)


class ShuffleWrite(PropertyWriteHandler):
    def __init__(self, dispatcher: CommandDispatcher) -> None:
        self.dispatcher = dispatcher

    def on_write(self, value: Any) -> None:
        self.dispatcher.set_shuffle(value)


def register_write_handlers(player: PropertyTable, dispatcher: CommandDispatcher) -> None:
    """Makes the writable Player properties writable."""
    player.register_handler("LoopStatus", LoopStatusWrite(dispatcher))
    player.register_handler("Volume", VolumeWrite(dispatcher))
    player.register_handler("Shuffle", ShuffleWrite(dispatcher))
    player.register_handler("Rate", NotImplementedWrite())
