"""Tests for configuration loading and MPD address resolution."""

import json
from dataclasses import asdict
from pathlib import Path

import pytest

from mpd_mpris_bridge.config import (
    KEEPALIVE_SECONDS_DEFAULT,
    Config,
    MprisConfig,
    MpdConfig,
    apply_environment,
    bus_name,
    load_config_from_json,
    read_password,
    resolve_mpd_address,
)


def test_defaults() -> None:
    config = Config()

    assert config.mpd.port == 6600
    assert config.sync.keepalive_seconds == KEEPALIVE_SECONDS_DEFAULT
    assert config.sync.volume_dead_band == 0.01
    assert config.art.enabled is True


def test_load_config_from_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "app": {"debug": True},
        "mpd": {"host": "music.local", "port": 6601},
        "art": {"enabled": False},
    }))

    config = load_config_from_json(path)

    assert config.app.debug is True
    assert config.mpd.host == "music.local"
    assert config.mpd.port == 6601
    assert config.art.enabled is False
    assert config.mpris == MprisConfig()


def test_load_config_requires_object(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[]")

    with pytest.raises(ValueError):
        load_config_from_json(path)


def test_mpd_timeout_sets_keepalive() -> None:
    config = Config()

    apply_environment(config, {"MPD_TIMEOUT": "10"})

    assert config.sync.keepalive_seconds == 10.0


def test_invalid_mpd_timeout_is_ignored() -> None:
    config = Config()

    apply_environment(config, {"MPD_TIMEOUT": "soon"})

    assert config.sync.keepalive_seconds == KEEPALIVE_SECONDS_DEFAULT


# -----------------------------------------------------------------------------
# Passwords
# -----------------------------------------------------------------------------

def test_password_file(tmp_path: Path) -> None:
    path = tmp_path / "pwd"
    path.write_text("hunter2\n")

    assert read_password(MpdConfig(password_file=str(path))) == "hunter2"


def test_empty_password_file(tmp_path: Path) -> None:
    path = tmp_path / "pwd"
    path.write_text("\n")

    with pytest.raises(ValueError):
        read_password(MpdConfig(password_file=str(path)))


def test_password_and_password_file_conflict(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        read_password(MpdConfig(password="a", password_file=str(tmp_path / "pwd")))


# -----------------------------------------------------------------------------
# Address resolution
# -----------------------------------------------------------------------------

def test_explicit_host_wins() -> None:
    address = resolve_mpd_address(MpdConfig(host="10.0.0.2", port=6601), {"MPD_HOST": "other"})

    assert (address.network, address.address, address.port) == ("tcp", "10.0.0.2", 6601)


def test_default_is_localhost() -> None:
    address = resolve_mpd_address(MpdConfig(), {})

    assert (address.network, address.address, address.port) == ("tcp", "localhost", 6600)


def test_address_holds_what_the_client_needs() -> None:
    address = resolve_mpd_address(MpdConfig(), {"MPD_HOST": "secret@music.local"})

    assert asdict(address) == {
        "network": "tcp",
        "address": "music.local",
        "port": 6600,
        "password": "secret",
    }


def test_runtime_dir_socket(tmp_path: Path) -> None:
    socket_path = tmp_path / "mpd" / "socket"
    socket_path.parent.mkdir()
    socket_path.touch()

    address = resolve_mpd_address(MpdConfig(), {"XDG_RUNTIME_DIR": str(tmp_path)})

    assert (address.network, address.address) == ("unix", str(socket_path))


def test_mpd_host_with_password() -> None:
    address = resolve_mpd_address(MpdConfig(), {"MPD_HOST": "secret@music.local", "MPD_PORT": "6602"})

    assert address.address == "music.local"
    assert address.password == "secret"
    assert address.port == 6602


def test_mpd_host_socket_path() -> None:
    address = resolve_mpd_address(MpdConfig(), {"MPD_HOST": "/run/mpd/socket"})

    assert (address.network, address.address) == ("unix", "/run/mpd/socket")
    assert address.password is None


def test_mpd_host_abstract_socket() -> None:
    address = resolve_mpd_address(MpdConfig(), {"MPD_HOST": "@mpd"})

    assert (address.network, address.address) == ("unix", "@mpd")
    assert address.password is None


def test_flag_password_beats_mpd_host_password() -> None:
    address = resolve_mpd_address(MpdConfig(password="flag"), {"MPD_HOST": "env@host"})

    assert address.password == "flag"


# -----------------------------------------------------------------------------
# Bus names
# -----------------------------------------------------------------------------

def test_bus_names() -> None:
    assert bus_name(MprisConfig(), 1234) == "org.mpris.MediaPlayer2.mpd.instance1234"
    assert bus_name(MprisConfig(no_instance=True), 1234) == "org.mpris.MediaPlayer2.mpd"
    assert bus_name(MprisConfig(instance_name="living_room"), 1234) == "org.mpris.MediaPlayer2.mpd.living_room"


def test_bus_name_conflict() -> None:
    with pytest.raises(ValueError):
        bus_name(MprisConfig(no_instance=True, instance_name="x"), 1)
