"""The MPRIS track list, kept in step with MPD's queue.

MPD reports queue edits with ``plchanges``: for a past queue version it lists
every slot whose content differs now, as ``(position, song)`` pairs. MPRIS
wants semantic ``TrackRemoved`` / ``TrackAdded(after)`` signals instead.
:func:`diff_playlist` reconstructs those edits from the positional report;
when the report is not smaller than the queue itself the whole list is sent
again with ``TrackListReplaced``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .event_bus import TRACK_ADDED, TRACK_LIST_REPLACED, TRACK_REMOVED, EventBus
from .models import MpdStatus, PlaylistChange, Track, metadata_for, track_object_path
from .properties import PropertyTable

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackRemoved:
    track_id: int


@dataclass(frozen=True)
class TrackAdded:
    track: Track
    # -1 when the track was inserted at the head of the list
    after_id: int


TrackEdit = Union[TrackRemoved, TrackAdded]


def diff_playlist(
    previous: Sequence[Track],
    changes: Sequence[PlaylistChange],
    new_length: int,
) -> Tuple[List[TrackEdit], List[Track]]:
    """Turns a ``plchanges`` report into ordered track list edits.

    Returns the edits (removals first, then insertions left to right) and the
    new track list. When a changed slot can be explained either way, removal is
    tried before insertion.
    """
    changes = sorted(changes, key=lambda change: change.position)
    to_insert: List[PlaylistChange] = []
    to_remove: List[int] = []

    # Net number of old tracks dropped (positive) or new tracks inserted
    # (negative) before the current position
    offset = 0
    for change in changes:
        ptr = change.position + offset
        if ptr < len(previous) and previous[ptr].id == change.track.id:
            continue
        if ptr + 1 < len(previous) and previous[ptr + 1].id == change.track.id:
            to_remove.append(previous[ptr].id)
            offset += 1
            continue
        to_insert.append(change)
        offset -= 1

    edits: List[TrackEdit] = []
    # Old tracks pushed past the new end of the list
    for ptr in range(max(0, new_length + offset), len(previous)):
        edits.append(TrackRemoved(previous[ptr].id))
    edits.extend(TrackRemoved(track_id) for track_id in to_remove)

    tracks = list(previous)
    for change in changes:
        if change.position >= len(tracks):
            tracks.append(change.track)
        else:
            tracks[change.position] = change.track
    del tracks[new_length:]

    for change in to_insert:
        after_id = tracks[change.position - 1].id if change.position > 0 else -1
        edits.append(TrackAdded(change.track, after_id))

    return edits, tracks


@dataclass
class TrackListPlan:
    """Everything one track list update needs, fetched ahead of emission."""
    version: int
    current_id: int
    tracks: List[Track]
    replaced: bool
    edits: List[TrackEdit] = field(default_factory=list)
    added_metadata: Dict[int, Dict[str, Any]] = field(default_factory=dict)


class TrackList:
    """Owns the local copy of the queue and announces its changes."""

    def __init__(
        self,
        client,
        properties: PropertyTable,
        event_bus: EventBus,
        art_url: Optional[Callable[[Track], Optional[str]]] = None,
    ) -> None:
        self.client = client
        self.properties = properties
        self.event_bus = event_bus
        self._art_url = art_url

        self.version = 0
        self.tracks: List[Track] = []

    # -------------------------------------------------------------------------
    # Synchronization
    # -------------------------------------------------------------------------

    def load(self, status: MpdStatus) -> None:
        """Replaces the local list with MPD's queue without announcing it."""
        self.tracks = self._fetch_full_playlist()
        self.version = status.playlist_version
        self.properties.set("Tracks", self.track_paths())

    def plan(self, status: MpdStatus) -> Optional[TrackListPlan]:
        """Fetches what changed since the recorded version. None if nothing did."""
        if status.playlist_version == self.version:
            return None

        changes = [
            PlaylistChange.from_attrs(attrs)
            for attrs in self.client.fetch_playlist_changes(self.version)
        ]
        if len(changes) < status.playlist_length:
            edits, tracks = diff_playlist(self.tracks, changes, status.playlist_length)
            return TrackListPlan(
                version=status.playlist_version,
                current_id=status.song_id,
                tracks=tracks,
                replaced=False,
                edits=edits,
                added_metadata={
                    edit.track.id: self.metadata(edit.track)
                    for edit in edits
                    if isinstance(edit, TrackAdded)
                },
            )

        _LOGGER.debug(
            "%s queue changes for %s tracks, replacing the track list",
            len(changes),
            status.playlist_length,
        )
        return TrackListPlan(
            version=status.playlist_version,
            current_id=status.song_id,
            tracks=self._fetch_full_playlist(),
            replaced=True,
        )

    def apply(self, plan: TrackListPlan) -> None:
        self.tracks = plan.tracks
        self.version = plan.version
        paths = self.track_paths()

        if plan.replaced:
            self.properties.set("Tracks", paths)
            # https://specifications.freedesktop.org/mpris-spec/latest/Track_List_Interface.html#Signal:TrackListReplaced
            self.event_bus.publish(
                TRACK_LIST_REPLACED,
                {"tracks": paths, "current": track_object_path(plan.current_id)},
            )
            return

        for edit in plan.edits:
            if isinstance(edit, TrackRemoved):
                self.event_bus.publish(
                    TRACK_REMOVED, {"track": track_object_path(edit.track_id)}
                )
            else:
                self.event_bus.publish(
                    TRACK_ADDED,
                    {
                        "metadata": plan.added_metadata[edit.track.id],
                        "after": track_object_path(edit.after_id),
                    },
                )
        self.properties.set("Tracks", paths)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def track_paths(self) -> List[str]:
        return [track.object_path for track in self.tracks]

    def find(self, track_id: int) -> Optional[Track]:
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None

    def metadata(self, track: Track) -> Dict[str, Any]:
        art_url = self._art_url(track) if self._art_url else None
        return metadata_for(track, art_url)

    def _fetch_full_playlist(self) -> List[Track]:
        return [Track.from_attrs(attrs) for attrs in self.client.fetch_full_playlist()]
