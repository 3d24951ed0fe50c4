import logging
from typing import Any, Callable, Dict, List, Optional

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]

# Notification topics published by the synchronizer and the track list
PROPERTY_CHANGED = "property_changed"
SEEKED = "seeked"
TRACK_ADDED = "track_added"
TRACK_REMOVED = "track_removed"
TRACK_LIST_REPLACED = "track_list_replaced"


class EventBus:
    """A simple synchronous publish/subscribe event bus.

    Listeners run on the publishing thread, in subscription order.
    """

    def __init__(self):
        self.topics: Dict[str, List[Listener]] = {}

    def subscribe(self, topic: str, listener: Listener) -> None:
        self.topics.setdefault(topic, []).append(listener)

    def publish(self, topic: str, data: Optional[Dict[str, Any]] = None) -> None:
        """
        Publishes an event to all subscribed listeners.

        A failing listener is logged and does not stop the others.
        """
        payload = dict(data or {})
        payload["__topic"] = topic

        for listener in list(self.topics.get(topic, [])):
            try:
                listener(payload)
            except Exception:
                _LOGGER.exception("Error in event listener for topic %s", topic)

# Client helpers for subscriptions

def subscribe(func: Callable) -> Callable:
    """Decorator to mark a method for event bus subscription."""
    func._event_bus_subscribe = True
    return func

class EventHandler:
    """
    A base class for components that subscribe to events.

    Every method decorated with @subscribe listens on the topic of the same name.
    """
    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    def _subscribe_all_methods(self):
        # Class attributes only, so properties are never evaluated
        for method_name in dir(type(self)):
            func = getattr(type(self), method_name, None)

            if callable(func) and hasattr(func, '_event_bus_subscribe'):
                self.event_bus.subscribe(method_name, getattr(self, method_name))
                _LOGGER.debug("Subscribed method '%s' to topic '%s'", method_name, method_name)
