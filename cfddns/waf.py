"""WAF list operations against the Cloudflare API."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from cfddns.base import (
    IPNet,
    IPNetwork,
    WAFList,
    WAFListItem,
    WAFListMeta,
    describe_prefix_or_ip,
    parse_prefix_or_ip,
)
from cfddns.cache import TTLCache, describe_free_form_string
from cfddns.client import AuthenticationError, AuthorizationError, CloudflareClient, CloudflareError

logger = logging.getLogger(__name__)

WAF_LIST_MAX_BIT_LEN: Dict[IPNet, int] = {IPNet.IP4: 32, IPNet.IP6: 64}
"""The longest prefix Cloudflare accepts in a WAF list, per IP family."""

LIST_KIND_IP = "ip"
BULK_OPERATION_ATTEMPTS = 16

_WAF_LIST_PERMISSION_HINT = (
    "Double check your API token and account ID. "
    'Make sure you granted the "Edit" permission of "Account - Account Filter Lists"'
)


def _lists_path(account_id: str) -> str:
    return f"/accounts/{account_id}/rules/lists"


class WAFMixin:
    """WAF list operations with caching.

    The host class provides ``client`` and calls ``_init_waf_caches``.
    Every operation raises :class:`CloudflareError` when it fails.
    """

    client: CloudflareClient
    bulk_poll_delay: float = 1.0
    _lists_cache: TTLCache[str, List[WAFListMeta]]
    _list_id_cache: TTLCache[WAFList, str]
    _list_items_cache: TTLCache[WAFList, List[WAFListItem]]

    def _init_waf_caches(self, cache_expiration: float) -> None:
        self._lists_cache = TTLCache(cache_expiration)
        self._list_id_cache = TTLCache(cache_expiration)
        self._list_items_cache = TTLCache(cache_expiration)

    def _flush_waf_caches(self) -> None:
        self._lists_cache.clear()
        self._list_id_cache.clear()
        self._list_items_cache.clear()

    def _hint_waf_list_permission(self, error: Exception) -> None:
        if not isinstance(error, (AuthenticationError, AuthorizationError)):
            return
        shown = self.__dict__.setdefault("_hints_shown", set())
        if "waf-list-permission" not in shown:
            shown.add("waf-list-permission")
            logger.warning("%s", _WAF_LIST_PERMISSION_HINT)

    @staticmethod
    def _hint_mismatched_description(waf_list: WAFList, meta: WAFListMeta, expected: str) -> None:
        logger.warning(
            "The description for the list %s (ID: %s) is %s. However, its description is expected to be %s. "
            "You can either change the description in the Cloudflare dashboard "
            "or change the value of WAF_LIST_DESCRIPTION to match the current description.",
            waf_list.describe(), meta.id,
            describe_free_form_string(meta.description), describe_free_form_string(expected),
        )

    def _wait_for_bulk_operation(self, account_id: str, operation_id: str) -> None:
        path = f"{_lists_path(account_id)}/bulk_operations/{operation_id}"
        for attempt in range(BULK_OPERATION_ATTEMPTS):
            if attempt:
                time.sleep(self.bulk_poll_delay * 2 ** (attempt // 2))
            result = self.client.request("GET", path) or {}
            status = result.get("status")
            if status == "completed":
                return
            if status == "failed":
                raise CloudflareError(f"bulk operation {operation_id} failed: {result.get('error', '')}")
            if status not in ("pending", "running"):
                raise CloudflareError(f"bulk operation {operation_id} is in an unexpected status {status!r}")
        raise CloudflareError(f"timed out waiting for bulk operation {operation_id}")

    def _fetch_list_items(self, account_id: str, list_id: str) -> List[Mapping[str, Any]]:
        return self.client.get_all(f"{_lists_path(account_id)}/{list_id}/items")

    @staticmethod
    def _read_waf_list_items(waf_list: WAFList, raw_items: Iterable[Mapping[str, Any]]) -> List[WAFListItem]:
        items: List[WAFListItem] = []
        for raw in raw_items:
            ip = raw.get("ip")
            if not isinstance(ip, str) or not ip:
                message = f"Found a non-IP in the list {waf_list.describe()}"
                logger.warning("%s", message)
                raise CloudflareError(message)
            try:
                prefix = parse_prefix_or_ip(ip)
            except ValueError as exc:
                message = f'Found an invalid IP range/address "{ip}" in the list {waf_list.describe()}'
                logger.warning("%s", message)
                raise CloudflareError(message) from exc
            comment = raw.get("comment") or ""
            if comment:
                logger.warning(
                    'The IP range/address "%s" in the list %s has a non-empty comment "%s". '
                    "The comment might be lost during an IP update.",
                    ip, waf_list.describe(), comment,
                )
            items.append(WAFListItem(id=str(raw.get("id", "")), prefix=prefix))
        return items

    def _store_items(self, waf_list: WAFList, items: List[WAFListItem]) -> None:
        self._list_items_cache.delete_expired()
        self._list_items_cache.set(waf_list, items)

    def list_waf_lists(self, account_id: str) -> List[WAFListMeta]:
        """Return the metadata of all IP lists in the account."""
        cached = self._lists_cache.get(account_id)
        if cached is not None:
            return list(cached)

        try:
            raw = self.client.request("GET", _lists_path(account_id)) or []
        except CloudflareError as exc:
            logger.error("Failed to list existing lists: %s", exc)
            self._hint_waf_list_permission(exc)
            raise

        metas = [
            WAFListMeta(id=str(item.get("id", "")), name=item.get("name", ""), description=item.get("description") or "")
            for item in raw
            if item.get("kind") == LIST_KIND_IP
        ]
        self._lists_cache.delete_expired()
        self._lists_cache.set(account_id, metas)
        return list(metas)

    def waf_list_id(self, waf_list: WAFList, expected_description: str) -> Optional[str]:
        """Return the ID of the list, or None if there is no such list."""
        cached = self._list_id_cache.get(waf_list)
        if cached is not None:
            return cached

        found: Optional[str] = None
        for meta in self.list_waf_lists(waf_list.account_id):
            if meta.name != waf_list.name:
                continue
            if found is not None:
                message = (
                    f'Found multiple lists named "{waf_list.name}" within the account {waf_list.account_id} '
                    f"(IDs: {found} and {meta.id}); please report this as a bug"
                )
                logger.warning("%s", message)
                raise CloudflareError(message)
            if meta.description != expected_description:
                self._hint_mismatched_description(waf_list, meta, expected_description)
            found = meta.id

        if found is None:
            return None
        self._list_id_cache.delete_expired()
        self._list_id_cache.set(waf_list, found)
        return found

    def find_waf_list(self, waf_list: WAFList, expected_description: str) -> str:
        """Return the ID of an existing list; raise if it cannot be found."""
        message = f"Failed to find the list {waf_list.describe()}"
        try:
            list_id = self.waf_list_id(waf_list, expected_description)
        except CloudflareError:
            logger.error("%s", message)
            raise
        if list_id is None:
            logger.error("%s", message)
            raise CloudflareError(message)
        return list_id

    def final_clear_waf_list_async(self, waf_list: WAFList, expected_description: str) -> bool:
        """Delete the list, or start clearing it if deletion fails.

        Returns True if the list was deleted and False if it is being cleared.
        The cached lists of the account are kept either way.
        """
        list_id = self.find_waf_list(waf_list, expected_description)
        path = _lists_path(waf_list.account_id)
        try:
            self.client.request("DELETE", f"{path}/{list_id}")
        except CloudflareError as exc:
            logger.error("Failed to delete the list %s; clearing it instead: %s", waf_list.describe(), exc)
            try:
                self.client.request("PUT", f"{path}/{list_id}/items", body=[])
            except CloudflareError as clear_exc:
                logger.error("Failed to start clearing the list %s: %s", waf_list.describe(), clear_exc)
                self._hint_waf_list_permission(clear_exc)
                raise
            finally:
                self._list_items_cache.delete(waf_list)
                self._list_id_cache.delete(waf_list)
            return False

        self._list_items_cache.delete(waf_list)
        self._list_id_cache.delete(waf_list)
        return True

    def list_waf_list_items(
        self, waf_list: WAFList, expected_description: str
    ) -> Tuple[List[WAFListItem], bool, bool]:
        """Return the items, whether the list already existed, and whether they were cached.

        A missing list is created empty.
        """
        cached = self._list_items_cache.get(waf_list)
        if cached is not None:
            return list(cached), True, True

        try:
            list_id = self.waf_list_id(waf_list, expected_description)
        except CloudflareError:
            logger.error("Failed to check the existence of the list %s", waf_list.describe())
            raise

        if list_id is None:
            body = {"name": waf_list.name, "description": expected_description, "kind": LIST_KIND_IP}
            try:
                result = self.client.request("POST", _lists_path(waf_list.account_id), body=body) or {}
            except CloudflareError as exc:
                logger.error("Failed to create the list %s: %s", waf_list.describe(), exc)
                self._hint_waf_list_permission(exc)
                self._lists_cache.delete(waf_list.account_id)
                raise

            list_id = str(result.get("id", ""))
            lists = self._lists_cache.get(waf_list.account_id)
            if lists is not None:
                lists.insert(0, WAFListMeta(id=list_id, name=waf_list.name, description=expected_description))
            self._list_id_cache.delete_expired()
            self._list_id_cache.set(waf_list, list_id)
            self._store_items(waf_list, [])
            return [], False, False

        try:
            raw_items = self._fetch_list_items(waf_list.account_id, list_id)
        except CloudflareError as exc:
            logger.error("Failed to retrieve items in the list %s: %s", waf_list.describe(), exc)
            self._hint_waf_list_permission(exc)
            raise

        items = self._read_waf_list_items(waf_list, raw_items)
        self._store_items(waf_list, items)
        return list(items), True, False

    def delete_waf_list_items(self, waf_list: WAFList, expected_description: str, ids: Sequence[str]) -> None:
        """Remove the items with the given IDs from the list."""
        if not ids:
            return
        list_id = self.find_waf_list(waf_list, expected_description)
        path = f"{_lists_path(waf_list.account_id)}/{list_id}/items"
        try:
            result = self.client.request("DELETE", path, body={"items": [{"id": i} for i in ids]}) or {}
            self._wait_for_bulk_operation(waf_list.account_id, str(result.get("operation_id", "")))
            raw_items = self._fetch_list_items(waf_list.account_id, list_id)
        except CloudflareError as exc:
            logger.error("Failed to finish deleting items from the list %s: %s", waf_list.describe(), exc)
            self._hint_waf_list_permission(exc)
            self._list_items_cache.delete(waf_list)
            raise

        self._store_items(waf_list, self._read_waf_list_items(waf_list, raw_items))

    def create_waf_list_items(
        self, waf_list: WAFList, expected_description: str, items: Sequence[IPNetwork], comment: str
    ) -> None:
        """Add IP ranges to the list, each with the given comment."""
        if not items:
            return
        list_id = self.find_waf_list(waf_list, expected_description)
        path = f"{_lists_path(waf_list.account_id)}/{list_id}/items"
        body = [{"ip": describe_prefix_or_ip(prefix), "comment": comment} for prefix in items]
        try:
            result = self.client.request("POST", path, body=body) or {}
            self._wait_for_bulk_operation(waf_list.account_id, str(result.get("operation_id", "")))
            raw_items = self._fetch_list_items(waf_list.account_id, list_id)
        except CloudflareError as exc:
            logger.error("Failed to finish adding items to the list %s: %s", waf_list.describe(), exc)
            self._hint_waf_list_permission(exc)
            self._list_items_cache.delete(waf_list)
            raise

        self._store_items(waf_list, self._read_waf_list_items(waf_list, raw_items))