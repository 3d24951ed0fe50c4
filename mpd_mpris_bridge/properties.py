"""Property tables for the MPRIS interfaces.

Each D-Bus interface owns one :class:`PropertyTable`. A property carries its
D-Bus signature, whether clients may write it, how a change is announced, and
for writable properties the :class:`PropertyWriteHandler` that turns a write
into MPD commands.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import NotSupportedError, ReadOnlyPropertyError, UnknownPropertyError
from .event_bus import PROPERTY_CHANGED, EventBus

_LOGGER = logging.getLogger(__name__)


class Emit(Enum):
    """How a change is announced in ``PropertiesChanged``."""
    TRUE = "true"
    INVALIDATES = "invalidates"
    FALSE = "false"


class PropertyWriteHandler(ABC):
    """Applies a client's write of one property."""

    @abstractmethod
    def on_write(self, value: Any) -> None:
        """Raise a BridgeError to reject the write."""


class NotImplementedWrite(PropertyWriteHandler):
    """Accepts the write syntactically and always fails."""

    def on_write(self, value: Any) -> None:
        raise NotSupportedError()


@dataclass
class Property:
    value: Any
    signature: str
    writable: bool = False
    emit: Emit = Emit.TRUE
    handler: Optional[PropertyWriteHandler] = None


class PropertyTable:
    """The properties of one interface, with change notification."""

    def __init__(self, interface: str, event_bus: EventBus, properties: Dict[str, Property]):
        self.interface = interface
        self.event_bus = event_bus
        self._properties = properties
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        return name in self._properties

    def get(self, name: str) -> Any:
        with self._lock:
            return self._property(name).value

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return {name: prop.value for name, prop in self._properties.items()}

    def signatures(self) -> Dict[str, str]:
        return {name: prop.signature for name, prop in self._properties.items()}

    def is_writable(self, name: str) -> bool:
        return self._property(name).writable

    def register_handler(self, name: str, handler: PropertyWriteHandler) -> None:
        prop = self._property(name)
        prop.handler = handler
        prop.writable = True

    def set(self, name: str, value: Any) -> None:
        """Stores ``value`` and announces it according to the property's emit mode."""
        with self._lock:
            prop = self._property(name)
            prop.value = value
            emit = prop.emit

        if emit is Emit.FALSE:
            return
        self.event_bus.publish(
            PROPERTY_CHANGED,
            {
                "interface": self.interface,
                "name": name,
                "value": value,
                "invalidate": emit is Emit.INVALIDATES,
            },
        )

    def write(self, name: str, value: Any) -> None:
        """Handles a client write. The stored value changes on the next sync."""
        prop = self._property(name)
        if not prop.writable or prop.handler is None:
            raise ReadOnlyPropertyError(f"Property {self.interface}.{name} is read-only")
        _LOGGER.info("%s changed to %r", name, value)
        prop.handler.on_write(value)

    def _property(self, name: str) -> Property:
        try:
            return self._properties[name]
        except KeyError:
            raise UnknownPropertyError(
                f"No property {name} on interface {self.interface}"
            ) from None
