"""Background tasks that keep the bridge connected and current."""

import logging
import queue
import threading
from datetime import timedelta
from typing import Callable, List, Optional

from .config import SyncConfig
from .errors import BridgeError, ConnectionLostError
from .synchronizer import StatusSynchronizer

_LOGGER = logging.getLogger(__name__)

# See https://mpd.readthedocs.io/en/latest/protocol.html#command-idle
SUBSYSTEMS = [
    "playlist",  # the queue (i.e. the current playlist) has been modified
    "player",  # the player has been started, stopped or seeked or tags of the current song changed
    "mixer",  # the volume has been changed
    "options",  # options like repeat, random, crossfade, replay gain
]

# How long the sync task waits for a message before checking for shutdown
_QUEUE_POLL_SECONDS = 0.5


class ConnectionWatcher:
    """Runs the keepalive, idle, sync and position threads.

    The idle thread blocks in MPD's ``idle`` and posts the changed subsystems
    on ``changes``; the sync thread turns each message into one tick.
    """

    def __init__(
        self,
        client,
        synchronizer: StatusSynchronizer,
        config: SyncConfig,
        on_fatal: Callable[[BaseException], None],
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.client = client
        self.synchronizer = synchronizer
        self.keepalive_seconds = config.keepalive_seconds
        self.position_interval = config.position_interval
        self.on_fatal = on_fatal
        self.stop_event = stop_event or threading.Event()

        self.changes: "queue.Queue[List[str]]" = queue.Queue()
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        """Starts all background threads."""
        for target, name in (
            (self._keepalive_loop, "MpdKeepaliveThread"),
            (self._idle_loop, "MpdIdleThread"),
            (self._sync_loop, "SyncThread"),
            (self._position_loop, "PositionThread"),
        ):
            thread = threading.Thread(target=target, daemon=True, name=name)
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        """Signals every thread to exit and waits for them."""
        self.stop_event.set()
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join()
        self._threads.clear()

    # -------------------------------------------------------------------------
    # Loop bodies
    # -------------------------------------------------------------------------

    def probe(self) -> bool:
        """Pings MPD once. Returns False after reporting a fatal error."""
        try:
            self.client.ping()
        except BridgeError as err:
            self._fatal(ConnectionLostError(f"Connection to mpd is severed: {err}"))
            return False
        return True

    def wait_once(self) -> bool:
        """Waits for one change and posts it. Returns False when done."""
        try:
            changed = self.client.wait_for_change(SUBSYSTEMS, self.stop_event)
        except BridgeError as err:
            self._fatal(err)
            return False
        if changed is None:
            return False
        _LOGGER.debug("mpd changed: %s", changed)
        self.changes.put(changed)
        return True

    def sync_once(self, timeout: Optional[float] = _QUEUE_POLL_SECONDS) -> bool:
        """Handles pending change messages with one tick.

        Returns False once a fatal error has been reported.
        """
        try:
            self.changes.get(timeout=timeout)
        except queue.Empty:
            return True
        # Several wakeups queued behind a slow tick need only one more tick
        while True:
            try:
                self.changes.get_nowait()
            except queue.Empty:
                break
        if self.stop_event.is_set():
            return False

        try:
            self.synchronizer.tick()
        except ConnectionLostError as err:
            self._fatal(err)
            return False
        except BridgeError:
            _LOGGER.exception("Synchronization failed, keeping the previous state")
        except Exception:
            _LOGGER.exception("Unexpected error during synchronization")
        return True

    # -------------------------------------------------------------------------
    # Threads
    # -------------------------------------------------------------------------

    def _keepalive_loop(self) -> None:
        while not self.stop_event.wait(self.keepalive_seconds):
            if not self.probe():
                return

    def _idle_loop(self) -> None:
        while not self.stop_event.is_set():
            if not self.wait_once():
                return

    def _sync_loop(self) -> None:
        while not self.stop_event.is_set():
            if not self.sync_once():
                return

    def _position_loop(self) -> None:
        step = timedelta(seconds=self.position_interval)
        while not self.stop_event.wait(self.position_interval):
            self.synchronizer.advance_position(step)

    def _fatal(self, err: BaseException) -> None:
        if self.stop_event.is_set():
            _LOGGER.debug("Ignoring error during shutdown: %s", err)
            return
        self.on_fatal(err)
