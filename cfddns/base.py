"""Core value types shared by the DNS record and WAF list handlers."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Union

from cfddns.ttl import TTL

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class IPNet(Enum):
    """An IP family."""

    IP4 = 4
    IP6 = 6

    def record_type(self) -> str:
        """Return the DNS record type holding addresses of this family."""
        return "A" if self is IPNet.IP4 else "AAAA"

    def describe(self) -> str:
        return "IPv4" if self is IPNet.IP4 else "IPv6"


def _to_ascii(name: str) -> str:
    name = name.strip().rstrip(".").lower()
    if not name:
        return ""
    try:
        return name.encode("idna").decode("ascii")
    except UnicodeError:
        return name


def _to_unicode(name: str) -> str:
    if not name:
        return ""
    try:
        return name.encode("ascii").decode("idna")
    except UnicodeError:
        return name


def _suffixes(name: str) -> Iterator[str]:
    while name:
        yield name
        _, _, name = name.partition(".")
    yield ""


@dataclass(frozen=True)
class FQDN:
    """A fully qualified domain name, stored in its ASCII form."""

    name: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _to_ascii(self.name))

    def dns_name_ascii(self) -> str:
        return self.name

    def describe(self) -> str:
        return _to_unicode(self.name)

    def zones(self) -> Iterator[str]:
        """Yield the candidate zone names, from the most specific to the root."""
        return _suffixes(self.name)


@dataclass(frozen=True)
class Wildcard:
    """A wildcard domain ``*.name``; ``name`` is the base domain."""

    name: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _to_ascii(self.name))

    def dns_name_ascii(self) -> str:
        return f"*.{self.name}" if self.name else "*"

    def describe(self) -> str:
        base = _to_unicode(self.name)
        return f"*.{base}" if base else "*"

    def zones(self) -> Iterator[str]:
        """Yield the candidate zone names, starting from the base domain."""
        return _suffixes(self.name)


Domain = Union[FQDN, Wildcard]


@dataclass(frozen=True)
class WAFList:
    """A WAF list identified by its account and name."""

    account_id: str
    name: str

    def describe(self) -> str:
        return f"{self.account_id}/{self.name}"


@dataclass(frozen=True)
class RecordParams:
    """The parameters of a DNS record other than its content."""

    ttl: TTL
    proxied: bool = False
    comment: str = ""


@dataclass(frozen=True)
class Record:
    """A DNS record."""

    id: str
    ip: IPAddress
    params: RecordParams


@dataclass(frozen=True)
class WAFListItem:
    """An IP range stored in a WAF list."""

    id: str
    prefix: IPNetwork


@dataclass(frozen=True)
class WAFListMeta:
    """The metadata of a WAF list."""

    id: str
    name: str
    description: str


class DeletionMode(Enum):
    """Whether a failed deletion should invalidate cached records."""

    REGULAR = "regular"
    FINAL = "final"


def parse_prefix_or_ip(text: str) -> IPNetwork:
    """Parse an IP range or a single IP address into a network.

    A single address becomes a range of maximal prefix length.
    Raises ValueError if the text is neither.
    """
    try:
        return ipaddress.ip_network(text, strict=False)
    except ValueError as exc:
        raise ValueError(f"{text!r} is neither an IP range nor an IP address: {exc}") from exc


def describe_prefix_or_ip(prefix: IPNetwork) -> str:
    """Format a range, writing a single-address range as a bare address."""
    if prefix.prefixlen == prefix.max_prefixlen:
        return str(prefix.network_address)
    return str(prefix)