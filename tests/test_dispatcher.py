"""Tests for MPRIS commands and property writes."""

from datetime import timedelta

import pytest

from mpd_mpris_bridge.errors import (
    CommandRejectedError,
    NotSupportedError,
    ReadOnlyPropertyError,
    UnknownPropertyError,
)
from mpd_mpris_bridge.event_bus import SEEKED
from mpd_mpris_bridge.instance import Instance

from conftest import EventRecorder, FakeMpd

NO_TRACK = "/org/mpris/MediaPlayer2/TrackList/NoTrack"


def _start(instance: Instance, fake_mpd: FakeMpd, recorder: EventRecorder, state: str = "play", elapsed: str = "5.0") -> Instance:
    fake_mpd.set_queue(1, 2, 3)
    fake_mpd.play_song(1, state=state, elapsed=elapsed, duration="60.0")
    instance.synchronizer.initialize()
    recorder.clear()
    return instance


@pytest.fixture
def playing(instance: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> Instance:
    return _start(instance, fake_mpd, recorder)


@pytest.fixture
def paused(instance: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> Instance:
    return _start(instance, fake_mpd, recorder, state="pause")

# -----------------------------------------------------------------------------
# Playback
# -----------------------------------------------------------------------------

def test_play_pause_while_paused(paused: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    paused.dispatcher.play_pause()

    assert fake_mpd.commands == [("play",)]
    assert recorder.changed("PlaybackStatus") == ["Playing"]
    assert paused.player.get("PlaybackStatus") == "Playing"


def test_play_pause_while_playing(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.dispatcher.play_pause()

    assert fake_mpd.commands == [("pause", 1)]
    assert recorder.changed("PlaybackStatus") == ["Paused"]


def test_simple_commands(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.next()
    playing.dispatcher.previous()
    playing.dispatcher.stop()
    playing.dispatcher.play()
    playing.dispatcher.pause()

    assert fake_mpd.commands == [("next",), ("previous",), ("stop",), ("play",), ("pause", 1)]


def test_rejected_command_propagates(playing: Instance, fake_mpd: FakeMpd) -> None:
    fake_mpd.fail_with = CommandRejectedError("[50@0] {play} No such song")

    with pytest.raises(CommandRejectedError):
        playing.dispatcher.play()

# -----------------------------------------------------------------------------
# Seeking
# -----------------------------------------------------------------------------

def test_seek_before_start_clamps_to_zero(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.dispatcher.seek(timedelta(seconds=-10))

    assert fake_mpd.commands == [("seekid", 1, "0.000")]
    assert [event["position"] for event in recorder.of(SEEKED)] == [0]
    assert playing.player.get("Position") == 0


def test_seek_forward(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.dispatcher.seek(timedelta(seconds=20))

    assert fake_mpd.commands == [("seekid", 1, "25.000")]
    assert [event["position"] for event in recorder.of(SEEKED)] == [25_000_000]


def test_seek_past_end_skips_to_next(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.dispatcher.seek(timedelta(seconds=100))

    assert fake_mpd.commands == [("next",)]
    assert recorder.of(SEEKED) == []


def test_seek_unseekable_does_nothing(playing: Instance, fake_mpd: FakeMpd) -> None:
    del fake_mpd.status["elapsed"]

    playing.dispatcher.seek(timedelta(seconds=5))

    assert fake_mpd.commands == []


def test_set_position(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.dispatcher.set_position("/org/mpd/Tracks/1", timedelta(seconds=30))

    assert fake_mpd.commands == [("seekid", 1, "30.000")]
    assert len(recorder.of(SEEKED)) == 1


def test_set_position_ignores_stale_track(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.set_position("/org/mpd/Tracks/2", timedelta(seconds=30))

    assert fake_mpd.commands == []


def test_set_position_ignores_out_of_range(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.set_position("/org/mpd/Tracks/1", timedelta(seconds=-1))
    playing.dispatcher.set_position("/org/mpd/Tracks/1", timedelta(seconds=61))

    assert fake_mpd.commands == []

# -----------------------------------------------------------------------------
# Property writes
# -----------------------------------------------------------------------------

def test_write_loop_status(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.player.write("LoopStatus", "Track")

    assert fake_mpd.commands == [("single", 1), ("repeat", 1)]
    assert recorder.changed("LoopStatus") == ["Track"]


def test_write_loop_status_none(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.player.write("LoopStatus", "None")

    assert fake_mpd.commands == [("single", 0), ("repeat", 0)]


def test_write_invalid_loop_status(playing: Instance, fake_mpd: FakeMpd) -> None:
    with pytest.raises(CommandRejectedError):
        playing.player.write("LoopStatus", "Forever")

    assert fake_mpd.commands == []


def test_write_volume(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.player.write("Volume", 0.7)

    assert fake_mpd.commands == [("setvol", 70)]
    assert recorder.changed("Volume") == [0.7]


def test_write_volume_is_clamped(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.player.write("Volume", 1.5)
    playing.player.write("Volume", -0.2)

    assert fake_mpd.commands == [("setvol", 100), ("setvol", 0)]


def test_write_shuffle(playing: Instance, fake_mpd: FakeMpd, recorder: EventRecorder) -> None:
    playing.player.write("Shuffle", True)

    assert fake_mpd.commands == [("random", 1)]
    assert recorder.changed("Shuffle") == [True]


def test_write_rate_is_not_supported(playing: Instance, fake_mpd: FakeMpd) -> None:
    assert playing.player.is_writable("Rate")

    with pytest.raises(NotSupportedError):
        playing.player.write("Rate", 2.0)

    assert fake_mpd.commands == []


def test_write_read_only_property(playing: Instance) -> None:
    with pytest.raises(ReadOnlyPropertyError):
        playing.player.write("PlaybackStatus", "Playing")


def test_write_unknown_property(playing: Instance) -> None:
    with pytest.raises(UnknownPropertyError):
        playing.player.write("Brightness", 1)

# -----------------------------------------------------------------------------
# Track list
# -----------------------------------------------------------------------------

def test_go_to(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.go_to("/org/mpd/Tracks/3")
    playing.dispatcher.go_to("/org/mpd/Tracks/99")

    assert fake_mpd.commands == [("playid", 3)]


def test_remove_track(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.remove_track("/org/mpd/Tracks/2")

    assert fake_mpd.commands == [("deleteid", 2)]


def test_add_track_at_head(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.add_track("music/new.flac", NO_TRACK, False)

    assert fake_mpd.commands == [("addid", "music/new.flac", 0)]


def test_add_track_after_and_play(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.add_track("music/new.flac", "/org/mpd/Tracks/2", True)

    assert fake_mpd.commands == [("addid", "music/new.flac", 2), ("playid", 101)]


def test_add_track_after_unknown_track(playing: Instance, fake_mpd: FakeMpd) -> None:
    playing.dispatcher.add_track("music/new.flac", "/org/mpd/Tracks/42", False)

    assert fake_mpd.commands == []
