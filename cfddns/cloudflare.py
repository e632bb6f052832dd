"""The Cloudflare handle combining DNS record and WAF list operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Union

from cfddns.client import DEFAULT_BASE_URL, CloudflareClient
from cfddns.records import RecordsMixin
from cfddns.waf import WAFMixin

logger = logging.getLogger(__name__)


class CloudflareHandle(RecordsMixin, WAFMixin):
    """Updates DNS records and WAF lists, caching API responses."""

    def __init__(self, client: CloudflareClient, cache_expiration: Union[float, timedelta]) -> None:
        if isinstance(cache_expiration, timedelta):
            cache_expiration = cache_expiration.total_seconds()
        self.client = client
        self._init_record_caches(cache_expiration)
        self._init_waf_caches(cache_expiration)

    def __enter__(self) -> "CloudflareHandle":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.client.close()

    def flush_cache(self) -> None:
        """Forget every cached API response."""
        self._flush_record_caches()
        self._flush_waf_caches()


@dataclass(frozen=True)
class CloudflareAuth:
    """Authentication data for creating a :class:`CloudflareHandle`."""

    token: str = field(repr=False)
    base_url: str = ""

    def new(self, cache_expiration: Union[float, timedelta]) -> CloudflareHandle:
        """Create a handle; raise ValueError if the token is unusable."""
        try:
            client = CloudflareClient(self.token, self.base_url or DEFAULT_BASE_URL)
        except ValueError as exc:
            logger.error("Failed to prepare the Cloudflare authentication: %s", exc)
            raise
        return CloudflareHandle(client, cache_expiration)