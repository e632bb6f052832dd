"""DNS zone lookup and record operations against the Cloudflare API."""

from __future__ import annotations

import ipaddress
import logging
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from cfddns.base import DeletionMode, Domain, IPAddress, IPNet, Record, RecordParams
from cfddns.cache import TTLCache, describe_free_form_string
from cfddns.client import AuthenticationError, AuthorizationError, CloudflareClient, CloudflareError
from cfddns.ttl import TTL, TTL_AUTO

logger = logging.getLogger(__name__)

ZONE_PAGE_SIZE = 50
RECORD_PAGE_SIZE = 100

_WARNING_ZONE_STATUSES = frozenset({"deactivated", "initializing", "moved", "pending"})
_SKIPPED_ZONE_STATUSES = frozenset({"deleted"})

_RECORD_PERMISSION_HINT = (
    'Double check your API token. Make sure you granted the "Edit" permission of "Zone - DNS"'
)

_PROXIED_DESCRIPTIONS = {True: "proxied", False: "not proxied (DNS only)"}
_PROXIED_NEGATIONS = {True: "", False: "not "}


def _english_join(items: Iterable[str]) -> str:
    words = list(items)
    if not words:
        return "(none)"
    if len(words) == 1:
        return words[0]
    if len(words) == 2:
        return f"{words[0]} and {words[1]}"
    return ", ".join(words[:-1]) + ", and " + words[-1]


def _record_params(raw: Mapping[str, Any]) -> RecordParams:
    return RecordParams(
        ttl=TTL(int(raw.get("ttl") or 0)),
        proxied=raw.get("proxied") is True,
        comment=raw.get("comment") or "",
    )


class RecordsMixin:
    """Zone and DNS record operations with caching.

    The host class provides ``client`` and calls ``_init_record_caches``.
    Every operation raises :class:`CloudflareError` when it fails.
    """

    client: CloudflareClient
    _zones_cache: TTLCache[str, List[str]]
    _zone_of_domain_cache: TTLCache[str, str]
    _records_cache: Dict[IPNet, TTLCache[str, List[Record]]]

    def _init_record_caches(self, cache_expiration: float) -> None:
        self._zones_cache = TTLCache(cache_expiration)
        self._zone_of_domain_cache = TTLCache(cache_expiration)
        self._records_cache = {net: TTLCache(cache_expiration) for net in IPNet}

    def _flush_record_caches(self) -> None:
        self._zones_cache.clear()
        self._zone_of_domain_cache.clear()
        for cache in self._records_cache.values():
            cache.clear()

    def _notice_once(self, key: str, message: str) -> None:
        shown = self.__dict__.setdefault("_hints_shown", set())
        if key not in shown:
            shown.add(key)
            logger.warning("%s", message)

    def _hint_record_permission(self, error: Exception) -> None:
        if isinstance(error, (AuthenticationError, AuthorizationError)):
            self._notice_once("record-permission", _RECORD_PERMISSION_HINT)

    @staticmethod
    def _hint_mismatched_ttl(ip_net: IPNet, domain: Domain, record_id: str, current: TTL, expected: TTL) -> None:
        logger.warning(
            "The TTL for the %s record of %s (ID: %s) is %s. However, it is expected to be %s. "
            "You can either change the TTL to %s in the Cloudflare dashboard "
            "or change the expected TTL with TTL=%d.",
            ip_net.record_type(), domain.describe(), record_id,
            current.describe(), expected.describe(), expected.describe(), int(current),
        )

    @staticmethod
    def _hint_mismatched_proxied(
        ip_net: IPNet, domain: Domain, record_id: str, current: bool, expected: bool
    ) -> None:
        logger.warning(
            "The %s record of %s (ID: %s) is %s. However, it is %sexpected to be proxied. "
            'You can either change the proxy status to "%s" in the Cloudflare dashboard '
            "or change the value of PROXIED to match the current setting.",
            ip_net.record_type(), domain.describe(), record_id,
            _PROXIED_DESCRIPTIONS[current], _PROXIED_NEGATIONS[expected], _PROXIED_DESCRIPTIONS[expected],
        )

    @staticmethod
    def _hint_mismatched_comment(
        ip_net: IPNet, domain: Domain, record_id: str, current: str, expected: str
    ) -> None:
        logger.warning(
            "The comment for %s record of %s (ID: %s) is %s. However, it is expected to be %s. "
            "You can either change the comment in the Cloudflare dashboard "
            "or change the value of RECORD_COMMENT to match the current comment.",
            ip_net.record_type(), domain.describe(), record_id,
            describe_free_form_string(current), describe_free_form_string(expected),
        )

    def list_zones(self, name: str) -> List[str]:
        """Return the IDs of usable zones with the given name."""
        # The root zone is never managed by Cloudflare.
        if not name:
            return []

        cached = self._zones_cache.get(name)
        if cached is not None:
            return list(cached)

        try:
            raw = self.client.get_all("/zones", {"name": name}, per_page=ZONE_PAGE_SIZE)
        except CloudflareError as exc:
            logger.error("Failed to check the existence of a zone named %s: %s", name, exc)
            self._hint_record_permission(exc)
            raise

        ids: List[str] = []
        for zone in raw:
            status = zone.get("status", "")
            zone_id = str(zone.get("id", ""))
            if status == "active":
                ids.append(zone_id)
            elif status in _WARNING_ZONE_STATUSES:
                logger.warning(
                    'DNS zone %s is "%s" in your Cloudflare account; '
                    "some features (e.g., proxying) might not work as expected",
                    name, status,
                )
                ids.append(zone_id)
            elif status in _SKIPPED_ZONE_STATUSES:
                logger.info('DNS zone %s is "%s" in your Cloudflare account and thus skipped', name, status)
            else:
                logger.warning(
                    'DNS zone %s is in an undocumented status "%s" in your Cloudflare account; '
                    "please report this as a bug",
                    name, status,
                )
                ids.append(zone_id)

        self._zones_cache.delete_expired()
        self._zones_cache.set(name, ids)
        return list(ids)

    def zone_id_of_domain(self, domain: Domain) -> str:
        """Return the ID of the single zone governing ``domain``."""
        key = domain.dns_name_ascii()
        cached = self._zone_of_domain_cache.get(key)
        if cached is not None:
            return cached

        for zone_name in domain.zones():
            zones = self.list_zones(zone_name)
            if not zones:
                continue
            if len(zones) > 1:
                message = (
                    f"Found multiple active zones named {zone_name} "
                    f"(IDs: {_english_join(zones)}); please report this as a bug"
                )
                logger.warning("%s", message)
                raise CloudflareError(message)
            self._zone_of_domain_cache.delete_expired()
            self._zone_of_domain_cache.set(key, zones[0])
            return zones[0]

        message = f"Failed to find the zone of {domain.describe()}"
        logger.error("%s", message)
        raise CloudflareError(message)

    def list_records(
        self, ip_net: IPNet, domain: Domain, expected_params: RecordParams
    ) -> Tuple[List[Record], bool]:
        """Return the matching records and whether they came from the cache."""
        key = domain.dns_name_ascii()
        cache = self._records_cache[ip_net]
        cached = cache.get(key)
        if cached is not None:
            return list(cached), True

        zone = self.zone_id_of_domain(domain)
        try:
            raw = self.client.get_all(
                f"/zones/{zone}/dns_records",
                {"name": key, "type": ip_net.record_type()},
                per_page=RECORD_PAGE_SIZE,
            )
        except CloudflareError as exc:
            logger.error(
                "Failed to retrieve %s records of %s: %s", ip_net.record_type(), domain.describe(), exc
            )
            self._hint_record_permission(exc)
            raise

        records: List[Record] = []
        for item in raw:
            record_id = str(item.get("id", ""))
            try:
                ip: IPAddress = ipaddress.ip_address(item.get("content", ""))
            except ValueError as exc:
                message = (
                    f"Failed to parse the IP address in an {ip_net.record_type()} record of "
                    f"{domain.describe()} (ID: {record_id}): {exc}"
                )
                logger.warning("%s", message)
                raise CloudflareError(message) from exc

            params = _record_params(item)
            if params.ttl != expected_params.ttl:
                self._hint_mismatched_ttl(ip_net, domain, record_id, params.ttl, expected_params.ttl)
            if params.proxied != expected_params.proxied:
                self._hint_mismatched_proxied(ip_net, domain, record_id, params.proxied, expected_params.proxied)
            if params.comment != expected_params.comment:
                self._hint_mismatched_comment(ip_net, domain, record_id, params.comment, expected_params.comment)
            records.append(Record(id=record_id, ip=ip, params=params))

        cache.delete_expired()
        cache.set(key, records)
        return list(records), False

    def delete_record(
        self, ip_net: IPNet, domain: Domain, record_id: str, mode: DeletionMode = DeletionMode.REGULAR
    ) -> None:
        """Delete one record; a final deletion keeps the cache on failure."""
        key = domain.dns_name_ascii()
        cache = self._records_cache[ip_net]
        zone = self.zone_id_of_domain(domain)
        try:
            self.client.request("DELETE", f"/zones/{zone}/dns_records/{record_id}")
        except CloudflareError as exc:
            logger.error(
                "Failed to delete a stale %s record of %s (ID: %s): %s",
                ip_net.record_type(), domain.describe(), record_id, exc,
            )
            self._hint_record_permission(exc)
            if mode is DeletionMode.REGULAR:
                cache.delete(key)
            raise

        cached = cache.get(key)
        if cached is not None:
            cached[:] = [r for r in cached if r.id != record_id]

    def update_record(
        self,
        ip_net: IPNet,
        domain: Domain,
        record_id: str,
        ip: IPAddress,
        current_params: RecordParams,
        expected_params: RecordParams,
    ) -> None:
        """Point an existing record at ``ip``."""
        key = domain.dns_name_ascii()
        cache = self._records_cache[ip_net]
        zone = self.zone_id_of_domain(domain)
        try:
            result = self.client.request(
                "PATCH", f"/zones/{zone}/dns_records/{record_id}", body={"content": str(ip)}
            )
        except CloudflareError as exc:
            logger.error(
                "Failed to update a stale %s record of %s (ID: %s): %s",
                ip_net.record_type(), domain.describe(), record_id, exc,
            )
            self._hint_record_permission(exc)
            cache.delete(key)
            raise

        updated = _record_params(result or {})
        if updated.ttl not in (current_params.ttl, expected_params.ttl):
            self._hint_mismatched_ttl(ip_net, domain, record_id, updated.ttl, expected_params.ttl)
        if updated.proxied not in (current_params.proxied, expected_params.proxied):
            self._hint_mismatched_proxied(ip_net, domain, record_id, updated.proxied, expected_params.proxied)
        if updated.comment not in (current_params.comment, expected_params.comment):
            self._hint_mismatched_comment(ip_net, domain, record_id, updated.comment, expected_params.comment)

        cached = cache.get(key)
        if cached is not None:
            cached[:] = [
                Record(id=record_id, ip=ip, params=updated) if r.id == record_id else r for r in cached
            ]

    def create_record(self, ip_net: IPNet, domain: Domain, ip: IPAddress, params: RecordParams) -> str:
        """Create a record and return its ID."""
        key = domain.dns_name_ascii()
        cache = self._records_cache[ip_net]
        zone = self.zone_id_of_domain(domain)
        body = {
            "name": key,
            "type": ip_net.record_type(),
            "content": str(ip),
            "ttl": int(params.ttl),
            "proxied": params.proxied,
            "comment": params.comment,
        }
        try:
            result = self.client.request("POST", f"/zones/{zone}/dns_records", body=body)
        except CloudflareError as exc:
            logger.error(
                "Failed to add a new %s record of %s: %s", ip_net.record_type(), domain.describe(), exc
            )
            self._hint_record_permission(exc)
            cache.delete(key)
            raise

        record_id = str((result or {}).get("id", ""))
        cached = cache.get(key)
        if cached is not None:
            cached.insert(0, Record(id=record_id, ip=ip, params=params))
        return record_id


__all__ = ["RecordsMixin", "TTL_AUTO", "ZONE_PAGE_SIZE", "RECORD_PAGE_SIZE"]