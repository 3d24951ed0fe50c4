"""Exports the bridge on the session bus as an MPRIS player.

Method calls arrive on the GLib main loop. Notifications are published on
whichever thread ran the tick, so every signal is handed to the main loop
with ``GLib.idle_add`` and leaves in publication order.
"""

import logging
from typing import Any, Callable, Dict

import dbus
import dbus.exceptions
import dbus.service
from gi.repository import GLib

from .errors import (
    BridgeError,
    ConnectionLostError,
    NotSupportedError,
    ReadOnlyPropertyError,
    UnknownPropertyError,
)
from .event_bus import EventHandler, subscribe
from .instance import PLAYER_IFACE, ROOT_IFACE, TRACKLIST_IFACE, Instance
from .models import from_microseconds

_LOGGER = logging.getLogger(__name__)

OBJECT_PATH = "/org/mpris/MediaPlayer2"
PROPERTIES_IFACE = dbus.PROPERTIES_IFACE
INTROSPECTABLE_IFACE = dbus.INTROSPECTABLE_IFACE

# -----------------------------------------------------------------------------
# D-Bus errors
# -----------------------------------------------------------------------------

class FailedError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.Failed"


class NotSupportedDBusError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.NotSupported"


class PropertyReadOnlyDBusError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.PropertyReadOnly"


class UnknownPropertyDBusError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.UnknownProperty"


class UnknownInterfaceDBusError(dbus.exceptions.DBusException):
    _dbus_error_name = "org.freedesktop.DBus.Error.UnknownInterface"

# -----------------------------------------------------------------------------
# Type conversion
# -----------------------------------------------------------------------------

def metadata_to_dbus(metadata: Dict[str, Any]) -> dbus.Dictionary:
    out = {}
    for key, value in metadata.items():
        if key == "mpris:trackid":
            out[key] = dbus.ObjectPath(value)
        elif key == "mpris:length":
            out[key] = dbus.Int64(value)
        elif key == "xesam:trackNumber":
            out[key] = dbus.Int32(value)
        elif isinstance(value, list):
            out[key] = dbus.Array(value, signature="s")
        else:
            out[key] = dbus.String(value)
    return dbus.Dictionary(out, signature="sv")


def to_dbus(value: Any, signature: str) -> Any:
    """Wraps a plain property value in the dbus type of ``signature``."""
    if signature == "a{sv}":
        return metadata_to_dbus(value)
    if signature == "as":
        return dbus.Array(value, signature="s")
    if signature == "ao":
        return dbus.Array([dbus.ObjectPath(p) for p in value], signature="o")
    converters = {
        "s": dbus.String,
        "b": dbus.Boolean,
        "d": dbus.Double,
        "x": dbus.Int64,
        "o": dbus.ObjectPath,
    }
    return converters[signature](value)


def from_dbus(value: Any) -> Any:
    if isinstance(value, dbus.Boolean):
        return bool(value)
    if isinstance(value, dbus.Double):
        return float(value)
    if isinstance(value, (dbus.Int16, dbus.Int32, dbus.Int64, dbus.Byte,
                          dbus.UInt16, dbus.UInt32, dbus.UInt64)):
        return int(value)
    if isinstance(value, (dbus.String, dbus.ObjectPath)):
        return str(value)
    return value

# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------

class MprisService(dbus.service.Object, EventHandler):
    """The ``/org/mpris/MediaPlayer2`` object."""

    def __init__(self, bus: dbus.Bus, bus_name: str, instance: Instance) -> None:
        self.instance = instance
        self.dispatcher = instance.dispatcher
        self.tables = instance.tables

        self._bus_name = dbus.service.BusName(
            bus_name,
            bus,
            allow_replacement=True,
            replace_existing=True,
            do_not_queue=True,
        )
        dbus.service.Object.__init__(self, bus, OBJECT_PATH)
        EventHandler.__init__(self, instance.event_bus)
        self._subscribe_all_methods()
        _LOGGER.info("Exported %s on %s", OBJECT_PATH, bus_name)

    def release(self) -> None:
        self.remove_from_connection()
        del self._bus_name

    # -------------------------------------------------------------------------
    # org.mpris.MediaPlayer2
    # -------------------------------------------------------------------------

    @dbus.service.method(ROOT_IFACE)
    def Raise(self):
        pass

    @dbus.service.method(ROOT_IFACE)
    def Quit(self):
        pass

    # -------------------------------------------------------------------------
    # org.mpris.MediaPlayer2.Player
    # -------------------------------------------------------------------------

    @dbus.service.method(PLAYER_IFACE)
    def Next(self):
        self._call(self.dispatcher.next)

    @dbus.service.method(PLAYER_IFACE)
    def Previous(self):
        self._call(self.dispatcher.previous)

    @dbus.service.method(PLAYER_IFACE)
    def Pause(self):
        self._call(self.dispatcher.pause)

    @dbus.service.method(PLAYER_IFACE)
    def PlayPause(self):
        self._call(self.dispatcher.play_pause)

    @dbus.service.method(PLAYER_IFACE)
    def Stop(self):
        self._call(self.dispatcher.stop)

    @dbus.service.method(PLAYER_IFACE)
    def Play(self):
        self._call(self.dispatcher.play)

    @dbus.service.method(PLAYER_IFACE, in_signature="x")
    def Seek(self, offset):
        self._call(self.dispatcher.seek, from_microseconds(int(offset)))

    @dbus.service.method(PLAYER_IFACE, in_signature="ox")
    def SetPosition(self, track_id, position):
        self._call(
            self.dispatcher.set_position, str(track_id), from_microseconds(int(position))
        )

    @dbus.service.method(PLAYER_IFACE, in_signature="s")
    def OpenUri(self, uri):
        raise NotSupportedDBusError("Not implemented")

    @dbus.service.signal(PLAYER_IFACE, signature="x")
    def Seeked(self, position):
        pass

    # -------------------------------------------------------------------------
    # org.mpris.MediaPlayer2.TrackList
    # -------------------------------------------------------------------------

    @dbus.service.method(TRACKLIST_IFACE, in_signature="ao", out_signature="aa{sv}")
    def GetTracksMetadata(self, track_ids):
        metadata = self._call(
            self.dispatcher.get_tracks_metadata, [str(t) for t in track_ids]
        )
        return dbus.Array([metadata_to_dbus(m) for m in metadata], signature="a{sv}")

    @dbus.service.method(TRACKLIST_IFACE, in_signature="sob")
    def AddTrack(self, uri, after_track, set_as_current):
        self._call(self.dispatcher.add_track, str(uri), str(after_track), bool(set_as_current))

    @dbus.service.method(TRACKLIST_IFACE, in_signature="o")
    def RemoveTrack(self, track_id):
        self._call(self.dispatcher.remove_track, str(track_id))

    @dbus.service.method(TRACKLIST_IFACE, in_signature="o")
    def GoTo(self, track_id):
        self._call(self.dispatcher.go_to, str(track_id))

    @dbus.service.signal(TRACKLIST_IFACE, signature="aoo")
    def TrackListReplaced(self, tracks, current_track):
        pass

    @dbus.service.signal(TRACKLIST_IFACE, signature="a{sv}o")
    def TrackAdded(self, metadata, after_track):
        pass

    @dbus.service.signal(TRACKLIST_IFACE, signature="o")
    def TrackRemoved(self, track_id):
        pass

    # -------------------------------------------------------------------------
    # org.freedesktop.DBus.Properties
    # -------------------------------------------------------------------------

    @dbus.service.method(PROPERTIES_IFACE, in_signature="ss", out_signature="v")
    def Get(self, interface_name, property_name):
        table = self._table(interface_name)
        name = str(property_name)
        value = self._call(table.get, name)
        return to_dbus(value, table.signatures()[name])

    @dbus.service.method(PROPERTIES_IFACE, in_signature="s", out_signature="a{sv}")
    def GetAll(self, interface_name):
        table = self._table(interface_name)
        signatures = table.signatures()
        return dbus.Dictionary(
            {name: to_dbus(value, signatures[name]) for name, value in table.get_all().items()},
            signature="sv",
        )

    @dbus.service.method(PROPERTIES_IFACE, in_signature="ssv")
    def Set(self, interface_name, property_name, value):
        table = self._table(interface_name)
        self._call(table.write, str(property_name), from_dbus(value))

    @dbus.service.signal(PROPERTIES_IFACE, signature="sa{sv}as")
    def PropertiesChanged(self, interface_name, changed_properties, invalidated_properties):
        pass

    # -------------------------------------------------------------------------
    # org.freedesktop.DBus.Introspectable
    # -------------------------------------------------------------------------

    @dbus.service.method(
        INTROSPECTABLE_IFACE,
        in_signature="",
        out_signature="s",
        path_keyword="object_path",
        connection_keyword="connection",
    )
    def Introspect(self, object_path, connection):
        # dbus-python knows methods and signals only; add the properties
        xml = dbus.service.Object.Introspect(self, object_path, connection)
        for interface, table in self.tables.items():
            props = "".join(
                '    <property name="%s" type="%s" access="%s"/>\n'
                % (name, signature, "readwrite" if table.is_writable(name) else "read")
                for name, signature in table.signatures().items()
            )
            tag = '<interface name="%s">\n' % interface
            xml = xml.replace(tag, tag + props, 1)
        return xml

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    @subscribe
    def property_changed(self, data: Dict[str, Any]) -> None:
        interface = data["interface"]
        name = data["name"]
        if data["invalidate"]:
            changed = dbus.Dictionary({}, signature="sv")
            invalidated = [name]
        else:
            signature = self.tables[interface].signatures()[name]
            changed = dbus.Dictionary({name: to_dbus(data["value"], signature)}, signature="sv")
            invalidated = []
        self._emit_later(
            self.PropertiesChanged,
            interface,
            changed,
            dbus.Array(invalidated, signature="s"),
        )

    @subscribe
    def seeked(self, data: Dict[str, Any]) -> None:
        self._emit_later(self.Seeked, dbus.Int64(data["position"]))

    @subscribe
    def track_added(self, data: Dict[str, Any]) -> None:
        self._emit_later(
            self.TrackAdded,
            metadata_to_dbus(data["metadata"]),
            dbus.ObjectPath(data["after"]),
        )

    @subscribe
    def track_removed(self, data: Dict[str, Any]) -> None:
        self._emit_later(self.TrackRemoved, dbus.ObjectPath(data["track"]))

    @subscribe
    def track_list_replaced(self, data: Dict[str, Any]) -> None:
        self._emit_later(
            self.TrackListReplaced,
            dbus.Array([dbus.ObjectPath(p) for p in data["tracks"]], signature="o"),
            dbus.ObjectPath(data["current"]),
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _emit_later(self, signal: Callable, *args: Any) -> None:
        def _emit() -> bool:
            signal(*args)
            return False

        GLib.idle_add(_emit)

    def _table(self, interface_name: str):
        try:
            return self.tables[str(interface_name)]
        except KeyError:
            raise UnknownInterfaceDBusError(f"No interface {interface_name}") from None

    def _call(self, func: Callable, *args: Any) -> Any:
        """Runs a bridge operation and maps its errors to D-Bus errors."""
        try:
            return func(*args)
        except ConnectionLostError as err:
            self.instance.fatal(err)
            raise FailedError(str(err)) from err
        except NotSupportedError as err:
            raise NotSupportedDBusError(str(err)) from err
        except ReadOnlyPropertyError as err:
            raise PropertyReadOnlyDBusError(str(err)) from err
        except UnknownPropertyError as err:
            raise UnknownPropertyDBusError(str(err)) from err
        except BridgeError as err:
            _LOGGER.warning("%s", err)
            raise FailedError(str(err)) from err

