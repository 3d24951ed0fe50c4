"""Album art cache.

MPRIS clients expect ``mpris:artUrl`` to be a URI they can open themselves,
while MPD only hands out the picture bytes. The cache writes those bytes into
a private temporary directory, one file per queue song id, for as long as the
cache is open.
"""

import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional, Set, Tuple

from .errors import CommandRejectedError

_LOGGER = logging.getLogger(__name__)


class AlbumArtCache:
    def __init__(
        self,
        fetch_art_bytes: Callable[[str], bytes],
        base_dir: Optional[Path] = None,
    ) -> None:
        """
        :param fetch_art_bytes: Returns the picture for a song path, b"" when there is none.
        :param base_dir: Where the cache directory is created (system temp dir by default).
        """
        self._fetch_art_bytes = fetch_art_bytes
        self._base_dir = base_dir
        self._dir: Optional[Path] = None
        self._missing: Set[Tuple[int, str]] = set()
        self._lock = threading.Lock()

    @property
    def directory(self) -> Optional[Path]:
        return self._dir

    def open(self) -> None:
        if self._dir is not None:
            return
        try:
            self._dir = Path(tempfile.mkdtemp(prefix="mpd_mpris_", dir=self._base_dir))
        except OSError:
            _LOGGER.exception("Cannot create album art directory, not supporting album arts")
            return
        _LOGGER.debug("Album art cache at %s", self._dir)

    def close(self) -> None:
        with self._lock:
            if self._dir is None:
                return
            shutil.rmtree(self._dir, ignore_errors=True)
            _LOGGER.debug("Removed album art cache %s", self._dir)
            self._dir = None
            self._missing.clear()

    def fetch(self, track_id: int, path: str) -> Optional[str]:
        """Returns a ``file://`` URI for the song's album art, or None."""
        if track_id < 0 or not path:
            return None

        with self._lock:
            if self._dir is None:
                return None

            art_path = self._dir / f"albumart_{track_id}"
            if art_path.exists():
                return art_path.as_uri()
            if (track_id, path) in self._missing:
                return None

            try:
                data = self._fetch_art_bytes(path)
                if data:
                    art_path.write_bytes(data)
            except (CommandRejectedError, OSError) as err:
                _LOGGER.warning("Error getting artwork for '%s': %s", path, err)
                data = b""

            if not data:
                self._missing.add((track_id, path))
                return None
            return art_path.as_uri()
