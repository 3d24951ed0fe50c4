"""Configuration models for the application."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import logging
_LOGGER = logging.getLogger(__name__)

# As MPD recommends a 30 second connection timeout, ping a little more often.
# https://mpd.readthedocs.io/en/latest/client.html#environment-variables
KEEPALIVE_SECONDS_DEFAULT = 25.0

# -----------------------------------------------------------------------------
# Configuration Dataclasses
# -----------------------------------------------------------------------------

@dataclass
class MpdConfig:
    """Where and how to reach MPD."""
    network: str = "tcp"
    host: Optional[str] = None
    port: int = 6600
    password: Optional[str] = None
    password_file: Optional[str] = None
    timeout: float = 10.0


@dataclass
class MprisConfig:
    """How the player is published on the session bus."""
    no_instance: bool = False
    instance_name: Optional[str] = None


@dataclass
class SyncConfig:
    """Synchronization thresholds and timers."""
    # Volume changes smaller than this (0..1 scale) are not announced
    volume_dead_band: float = 0.01
    # Position jumps larger than this while playing are announced as Seeked
    seek_trigger_seconds: float = 2.0
    keepalive_seconds: float = KEEPALIVE_SECONDS_DEFAULT
    position_interval: float = 1.0


@dataclass
class ArtConfig:
    """Album art cache settings."""
    enabled: bool = True
    directory: Optional[str] = None


@dataclass
class AppConfig:
    """General application settings."""
    debug: bool = False


@dataclass
class Config:
    """Main configuration object."""
    app: AppConfig = field(default_factory=AppConfig)
    mpd: MpdConfig = field(default_factory=MpdConfig)
    mpris: MprisConfig = field(default_factory=MprisConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    art: ArtConfig = field(default_factory=ArtConfig)


@dataclass
class MpdAddress:
    """The resolved MPD endpoint."""
    network: str
    address: str
    port: int
    password: Optional[str]

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def load_config_from_json(config_path: Path) -> Config:
    """Loads configuration from a JSON file and populates dataclasses."""

    # --- Step 1: Load raw JSON data ---
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except FileNotFoundError:
        _LOGGER.critical("Configuration file not found at: %s", config_path)
        raise
    except json.JSONDecodeError as e:
        _LOGGER.critical("Error parsing configuration file: %s", e)
        raise

    if not isinstance(raw_data, dict):
        raise ValueError("Configuration file must contain a JSON object.")

    # --- Step 2: Create config objects from raw data ---
    return Config(
        app=AppConfig(**raw_data.get("app", {})),
        mpd=MpdConfig(**raw_data.get("mpd", {})),
        mpris=MprisConfig(**raw_data.get("mpris", {})),
        sync=SyncConfig(**raw_data.get("sync", {})),
        art=ArtConfig(**raw_data.get("art", {})),
    )


def apply_environment(config: Config, environ: Mapping[str, str]) -> None:
    """Applies MPD_TIMEOUT (whole seconds) as the keepalive period."""
    timeout = environ.get("MPD_TIMEOUT")
    if not timeout:
        return
    try:
        config.sync.keepalive_seconds = float(int(timeout))
    except ValueError:
        _LOGGER.warning("Ignoring invalid MPD_TIMEOUT=%r", timeout)
        return
    _LOGGER.info("Using MPD_TIMEOUT's keepalive clock of %ss", config.sync.keepalive_seconds)


def read_password(config: MpdConfig) -> Optional[str]:
    """Returns the password from the configuration or the password file."""
    if config.password and config.password_file:
        raise ValueError("Only one of -pwd and -pwd-file should be supplied")
    if config.password:
        return config.password
    if not config.password_file:
        return None

    try:
        password = Path(config.password_file).read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read password file: {e}") from e
    password = password.rstrip("\r\n")
    if not password:
        raise ValueError("Password file contains an empty password")
    return password


def resolve_mpd_address(config: MpdConfig, environ: Mapping[str, str]) -> MpdAddress:
    """Works out the MPD endpoint the way MPD clients do.

    An explicit host wins. Otherwise MPD_HOST is read, which may carry a
    ``password@`` prefix and may name a unix socket path (``/...``) or an
    abstract socket (``@...``). Without either, the local socket under
    $XDG_RUNTIME_DIR is preferred over localhost.
    https://www.musicpd.org/doc/mpc/html/#cmdoption-host
    """
    password = read_password(config)
    network = config.network
    port = config.port

    if config.host:
        address = config.host
    else:
        env_host = environ.get("MPD_HOST", "")
        env_port = environ.get("MPD_PORT", "")
        if env_port.isdigit():
            port = int(env_port)

        if not env_host:
            address = "localhost"
            runtime_dir = environ.get("XDG_RUNTIME_DIR")
            if runtime_dir:
                socket_path = os.path.join(runtime_dir, "mpd", "socket")
                if os.path.exists(socket_path):
                    _LOGGER.info("Local mpd socket found. Using that!")
                    network = "unix"
                    address = socket_path
        else:
            # A leading '@' is an abstract socket, not a password delimiter
            if "@" in env_host[1:]:
                env_password, address = env_host.split("@", 1)
                if not password:
                    password = env_password
            else:
                address = env_host
            if address.startswith("/") or address.startswith("@"):
                network = "unix"

    return MpdAddress(
        network=network,
        address=address,
        port=port,
        password=password,
    )


def bus_name(config: MprisConfig, pid: int) -> str:
    """The well-known name requested on the session bus."""
    if config.no_instance and config.instance_name:
        raise ValueError("-no-instance cannot be used with -instance-name")
    if config.no_instance:
        return "org.mpris.MediaPlayer2.mpd"
    if config.instance_name:
        return f"org.mpris.MediaPlayer2.mpd.{config.instance_name}"
    return f"org.mpris.MediaPlayer2.mpd.instance{pid}"
