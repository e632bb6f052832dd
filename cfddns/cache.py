"""Expiring key-value cache and string helpers for API handlers."""

from __future__ import annotations

import time
from typing import Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


class TTLCache(Generic[K, V]):
    """A cache whose entries expire a fixed time after being set.

    Reading an entry does not extend its lifetime. An expiration of zero
    or less keeps entries forever. ``None`` is reserved to mean "missing".
    """

    def __init__(self, expiration: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.expiration = expiration
        self._clock = clock
        self._entries: Dict[K, Tuple[V, Optional[float]]] = {}

    def _expired(self, deadline: Optional[float], now: float) -> bool:
        return deadline is not None and now >= deadline

    def get(self, key: K) -> Optional[V]:
        """Return the live value for ``key``, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._expired(deadline, self._clock()):
            del self._entries[key]
            return None
        return value

    def set(self, key: K, value: V) -> None:
        deadline = self._clock() + self.expiration if self.expiration > 0 else None
        self._entries[key] = (value, deadline)

    def delete(self, key: K) -> None:
        self._entries.pop(key, None)

    def delete_expired(self) -> None:
        now = self._clock()
        self._entries = {
            key: entry for key, entry in self._entries.items() if not self._expired(entry[1], now)
        }

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _quote_char(char: str) -> str:
    if char in _ESCAPES:
        return _ESCAPES[char]
    code = ord(char)
    if code < 0x20 or code == 0x7F:
        return f"\\x{code:02x}"
    if char == " " or char.isprintable():
        return char
    if code < 0x10000:
        return f"\\u{code:04x}"
    return f"\\U{code:08x}"


def describe_free_form_string(text: str) -> str:
    """Quote a free-form string for printing; the empty string is ``empty``."""
    if not text:
        return "empty"
    return '"' + "".join(_quote_char(c) for c in text) + '"'