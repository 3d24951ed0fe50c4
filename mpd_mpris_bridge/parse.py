"""Typed field access over MPD attribute maps.

MPD answers every command with flat ``key: value`` pairs, which python-mpd2
hands over as a dict of strings (a list of strings when a key repeats).
:class:`AttrParser` turns those into typed values with a per-field policy:

- required fields record the first failure and abort the rest of the record;
- optional fields fall back to the zero value of their type.
"""

import logging
from datetime import timedelta
from typing import Any, Mapping, Optional

from .errors import ParseError

_LOGGER = logging.getLogger(__name__)


class AttrParser:
    """Parses fields out of one attribute map.

    Every accessor returns the zero value of its type when no value can be
    produced, so a record built from the same map is always identical.
    """

    def __init__(self, attrs: Mapping[str, Any]) -> None:
        self.attrs = attrs
        self.error: Optional[ParseError] = None

    # -------------------------------------------------------------------------
    # Field accessors
    # -------------------------------------------------------------------------

    def string(self, field: str, optional: bool = False) -> str:
        value = self._lookup(field, optional)
        return "" if value is None else value

    def integer(self, field: str, optional: bool = False) -> int:
        value = self._lookup(field, optional)
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError:
            self._fail(f"Field `{field}` = `{value}` parsing failed", optional)
            return 0

    def number(self, field: str, optional: bool = False) -> float:
        value = self._lookup(field, optional)
        if value is None:
            return 0.0
        try:
            return float(value)
        except ValueError:
            self._fail(f"Field `{field}` = `{value}` parsing failed", optional)
            return 0.0

    def boolean(self, field: str, optional: bool = False) -> bool:
        value = self._lookup(field, optional)
        if value is None:
            return False
        if value == "0":
            return False
        if value == "1":
            return True
        self._fail(
            f"Field `{field}` = `{value}` parsing failed: expected 0 or 1", optional
        )
        return False

    def duration(self, field: str, optional: bool = False) -> timedelta:
        """Fractional seconds as a :class:`timedelta`."""
        value = self._lookup(field, optional)
        if value is None:
            return timedelta(0)
        try:
            return timedelta(seconds=float(value))
        except (ValueError, OverflowError):
            self._fail(f"Field `{field}` = `{value}` parsing failed", optional)
            return timedelta(0)

    def has(self, field: str) -> bool:
        return bool(self.attrs.get(field))

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _lookup(self, field: str, optional: bool) -> Optional[str]:
        if self.error is not None:
            return None
        value = self.attrs.get(field)
        if isinstance(value, (list, tuple)):
            # Repeated tags: the first occurrence wins
            value = value[0] if value else None
        if value is None:
            self._fail(f"Field `{field}` is missing", optional)
            return None
        return str(value)

    def _fail(self, message: str, optional: bool) -> None:
        if optional:
            _LOGGER.debug("Ignoring optional field: %s", message)
            return
        self.error = ParseError(message)
