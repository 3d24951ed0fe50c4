#!/usr/bin/env python3
import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import dbus
import dbus.exceptions
from dbus.mainloop.glib import DBusGMainLoop
from gi.repository import GLib

from .config import Config, apply_environment, bus_name, load_config_from_json, resolve_mpd_address
from .dbus_service import MprisService
from .errors import BridgeError
from .instance import Instance
from .mpd_client import MpdClient

_LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Main Application
# -----------------------------------------------------------------------------

def main(argv: Optional[list] = None) -> int:
    # --- 1. Load Basics ---
    config = _init_basics(argv)
    apply_environment(config, os.environ)

    # --- 2. Connect to MPD ---
    try:
        address = resolve_mpd_address(config.mpd, os.environ)
        name = bus_name(config.mpris, os.getpid())
    except ValueError as e:
        _LOGGER.critical("%s", e)
        return 1

    client = MpdClient(
        address.network,
        address.address,
        port=address.port,
        password=address.password,
        timeout=config.mpd.timeout,
    )
    try:
        client.connect()
    except BridgeError as e:
        _LOGGER.critical("%s", e)
        return 1

    # --- 3. Build the bridge ---
    instance = Instance(client, config)
    loop = GLib.MainLoop()
    instance.add_stop_callback(lambda: GLib.idle_add(_quit, loop))

    # --- 4. Export on the session bus ---
    DBusGMainLoop(set_as_default=True)
    try:
        instance.start()
        service = MprisService(dbus.SessionBus(), name, instance)
    except (BridgeError, dbus.exceptions.DBusException) as e:
        _LOGGER.critical("%s", e)
        instance.close()
        return 1

    for signum in (signal.SIGINT, signal.SIGTERM):
        GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signum, _on_signal, instance)

    # --- 5. Run ---
    try:
        _LOGGER.info("Bridging mpd at %s as %s", client.display_address, name)
        loop.run()
    finally:
        # --- 6. Cleanup ---
        _LOGGER.debug("Shutting down...")
        service.release()
        instance.close()

    return 1 if instance.fatal_error is not None else 0

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _init_basics(argv: Optional[list] = None) -> Config:
    """Parses arguments, loads config and sets up logging."""
    parser = argparse.ArgumentParser(prog="mpd-mpris-bridge")
    parser.add_argument(
        "-c", "--config", type=Path, required=False, default=None,
        help="Path to configuration.json file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--network", help="The network used to reach the mpd server (\"tcp\" or \"unix\").")
    parser.add_argument("--host", help="The host used to dial to the mpd server.")
    parser.add_argument("--port", type=int, help="The port used to dial to the mpd server.")
    parser.add_argument("--pwd", help="The password used to dial to the mpd server.")
    parser.add_argument("--pwd-file", help="Path to a file containing the password used to dial to the mpd server.")
    parser.add_argument("--no-instance", action="store_true", help="Set the MPRIS's interface as 'org.mpris.MediaPlayer2.mpd' instead of 'org.mpris.MediaPlayer2.mpd.instance#'")
    parser.add_argument("--instance-name", help="Set the MPRIS's interface as 'org.mpris.MediaPlayer2.mpd.{instance-name}'")
    args = parser.parse_args(argv)

    config = load_config_from_json(args.config) if args.config else Config()

    if args.debug:
        config.app.debug = True
    if args.network:
        config.mpd.network = args.network
    if args.host:
        config.mpd.host = args.host
    if args.port:
        config.mpd.port = args.port
    if args.pwd:
        config.mpd.password = args.pwd
    if args.pwd_file:
        config.mpd.password_file = args.pwd_file
    if args.no_instance:
        config.mpris.no_instance = True
    if args.instance_name:
        config.mpris.instance_name = args.instance_name

    logging.basicConfig(
        level=logging.DEBUG if config.app.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    if args.config:
        _LOGGER.info("Loading configuration from: %s", args.config)

    return config


def _on_signal(instance: Instance) -> bool:
    _LOGGER.info("Signal received, stopping")
    instance.request_stop()
    return False


def _quit(loop: GLib.MainLoop) -> bool:
    loop.quit()
    return False


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
