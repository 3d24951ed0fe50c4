"""Error taxonomy shared by the bridge components."""


class BridgeError(Exception):
    """Base class for every error raised by the bridge."""


class ConnectionLostError(BridgeError):
    """The connection to MPD is severed. Fatal for the whole process."""


class ParseError(BridgeError):
    """A required field in an MPD response is missing or malformed."""


class CommandRejectedError(BridgeError):
    """MPD refused a command (ACK response)."""


class NotSupportedError(BridgeError):
    """The operation is not implemented by this player."""

    def __init__(self, message: str = "Not implemented") -> None:
        super().__init__(message)


class ReadOnlyPropertyError(BridgeError):
    """A write was attempted on a read-only property."""


class UnknownPropertyError(BridgeError):
    """The interface has no property with the requested name."""
