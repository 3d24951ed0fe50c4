"""Keeps the Player properties in step with MPD.

MPD only tells us *that* something changed. Every tick re-reads the status
and the current song, compares the result with the last announced snapshot
and announces the differences, one property at a time.
"""

import logging
import threading
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, List, Tuple

from .config import SyncConfig
from .event_bus import SEEKED, EventBus
from .models import MpdStatus, PlaybackStatus, PlayerState, Track, to_microseconds
from .properties import PropertyTable
from .tracklist import TrackList

_LOGGER = logging.getLogger(__name__)


class StatusSynchronizer:
    """Owns the last announced :class:`PlayerState`.

    ``lock`` serializes every reader and writer of ``state``: ticks, command
    handlers and position interpolation.
    """

    def __init__(
        self,
        client,
        properties: PropertyTable,
        event_bus: EventBus,
        tracklist: TrackList,
        config: SyncConfig,
    ) -> None:
        self.client = client
        self.properties = properties
        self.event_bus = event_bus
        self.tracklist = tracklist

        self.volume_dead_band = config.volume_dead_band
        self.seek_trigger = timedelta(seconds=config.seek_trigger_seconds)

        self.lock = threading.RLock()
        self.state = PlayerState()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """Loads the first snapshot and the track list."""
        with self.lock:
            status, track = self._fetch()
            self.state = PlayerState.from_remote(status, track)
            self.tracklist.load(status)
            for name, value in self._property_values(self.state).items():
                self.properties.set(name, value)
            _LOGGER.debug("Initial state: %s", self.state)

    def tick(self) -> None:
        """Runs one full fetch, diff and notify cycle."""
        with self.lock:
            self.tick_locked()

    def tick_locked(self) -> None:
        """Same as :meth:`tick`; the caller already holds ``lock``."""
        status, track = self._fetch()
        new = PlayerState.from_remote(status, track)
        plan = self.tracklist.plan(status)

        changes, volume, seeked = self._diff(self.state, new)
        # Volume stays at the announced value while inside the dead-band
        self.state = replace(new, volume=volume)

        for name, value in changes:
            self.properties.set(name, value)
        if seeked is not None:
            _LOGGER.debug("Position jumped to %s", seeked)
            self.event_bus.publish(SEEKED, {"position": to_microseconds(seeked)})
        if plan is not None:
            self.tracklist.apply(plan)

    def advance_position(self, step: timedelta) -> None:
        """Moves the estimated position forward while playing. Skips if busy."""
        if not self.lock.acquire(blocking=False):
            return
        try:
            if self.state.playback_status is not PlaybackStatus.PLAYING:
                return
            position = self.state.position + step
            self.state = replace(self.state, position=position)
            self.properties.set("Position", to_microseconds(position))
        finally:
            self.lock.release()

    def record_seek(self, position: timedelta) -> None:
        """Records a position the bridge moved to itself, so no tick reports it as a jump."""
        with self.lock:
            self.state = replace(self.state, position=position)
            self.properties.set("Position", to_microseconds(position))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _fetch(self) -> Tuple[MpdStatus, Track]:
        status_attrs = self.client.fetch_status()
        track_attrs = self.client.fetch_current_track()
        return MpdStatus.from_attrs(status_attrs), Track.from_attrs(track_attrs)

    def _diff(self, old: PlayerState, new: PlayerState):
        changes: List[Tuple[str, Any]] = []
        seeked = None

        if new.playback_status != old.playback_status:
            changes.append(("PlaybackStatus", new.playback_status.value))
        if new.loop_status != old.loop_status:
            changes.append(("LoopStatus", new.loop_status.value))
        if new.shuffle != old.shuffle:
            changes.append(("Shuffle", new.shuffle))

        volume = old.volume
        if abs(new.volume - old.volume) >= self.volume_dead_band:
            volume = new.volume
            changes.append(("Volume", volume))

        if not new.current_track.same_as(old.current_track):
            changes.append(("Metadata", self.tracklist.metadata(new.current_track)))
        if new.seekable != old.seekable:
            changes.append(("CanSeek", new.seekable))

        if new.position != old.position:
            if (
                abs(new.position - old.position) > self.seek_trigger
                and new.playback_status is PlaybackStatus.PLAYING
            ):
                seeked = new.position
            changes.append(("Position", to_microseconds(new.position)))

        return changes, volume, seeked

    def _property_values(self, state: PlayerState) -> Dict[str, Any]:
        return {
            "PlaybackStatus": state.playback_status.value,
            "LoopStatus": state.loop_status.value,
            "Shuffle": state.shuffle,
            "Metadata": self.tracklist.metadata(state.current_track),
            "Volume": state.volume,
            "Position": to_microseconds(state.position),
            "CanSeek": state.seekable,
        }
