"""Time-to-live values of DNS records."""

from __future__ import annotations


class TTL(int):
    """A time-to-live of a DNS record in seconds; the value 1 means automatic."""

    __slots__ = ()

    def describe(self) -> str:
        """Return a human-readable description suitable for printing."""
        if self == TTL_AUTO:
            return "1 (auto)"
        return int.__repr__(self)

    def __str__(self) -> str:
        return int.__repr__(self)

    def __repr__(self) -> str:
        return f"TTL({int.__repr__(self)})"


TTL_AUTO = TTL(1)
"""The value Cloudflare treats as "automatic"."""